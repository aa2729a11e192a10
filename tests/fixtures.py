"""Test data fixtures for pub tracker tests"""

import json
from pathlib import Path

# 2024-06-01T12:00:00Z
JUNE_2024_MS = 1_717_243_200_000
MINUTE_MS = 60_000


class TestDataFixtures:
    """Centralized test data fixtures"""

    @staticmethod
    def get_test_pubs():
        """Three pubs in Hackney; the first two sit about 5 m apart"""
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "id": "node/101",
                    "properties": {"tags": {"name": "The Cat & Mutton", "addr:postcode": "e8 4dg"}},
                    "geometry": {"type": "Point", "coordinates": [-0.0560, 51.5370]},
                },
                {
                    "type": "Feature",
                    "id": "node/102",
                    "properties": {"name": "The Dove", "addr:postcode": "E8 4QA"},
                    "geometry": {"type": "Point", "coordinates": [-0.05607, 51.53702]},
                },
                {
                    "type": "Feature",
                    "id": "node/103",
                    "properties": {"tags": {}},
                    "geometry": {"type": "Point", "coordinates": [-0.0700, 51.5500]},
                },
            ],
        }

    @staticmethod
    def get_test_timeline_objects():
        """Semantic Location History with one long and one short place visit"""
        return {
            "timelineObjects": [
                {
                    "placeVisit": {
                        "location": {"latitudeE7": 515370000, "longitudeE7": -560000, "name": "The Cat & Mutton"},
                        "duration": {
                            "startTimestampMs": str(JUNE_2024_MS),
                            "endTimestampMs": str(JUNE_2024_MS + 45 * MINUTE_MS),
                        },
                    }
                },
                {"activitySegment": {"distance": 1200}},
                {
                    "placeVisit": {
                        "location": {"latitudeE7": 515500000, "longitudeE7": -700000},
                        "duration": {
                            "startTimestampMs": str(JUNE_2024_MS + 60 * MINUTE_MS),
                            "endTimestampMs": str(JUNE_2024_MS + 70 * MINUTE_MS),
                        },
                    }
                },
            ]
        }

    @staticmethod
    def get_test_locations():
        """Records.json raw pings"""
        return {
            "locations": [
                {"latitudeE7": 515370000, "longitudeE7": -560000, "timestampMs": str(JUNE_2024_MS)},
                {"latitudeE7": 515370000, "longitudeE7": -560000, "timestampMs": str(JUNE_2024_MS + MINUTE_MS)},
            ]
        }

    @staticmethod
    def get_test_semantic_segments():
        """On-device timeline with a place segment and an activity segment"""
        return {
            "semanticSegments": [
                {
                    "segmentType": "TYPE_PLACE",
                    "placeVisit": {
                        "location": {"latitudeE7": 515370000, "longitudeE7": -560000},
                        "duration": {
                            "startTimestampMs": str(JUNE_2024_MS),
                            "endTimestampMs": str(JUNE_2024_MS + 40 * MINUTE_MS),
                        },
                    },
                },
                {
                    "segmentType": "TYPE_ACTIVITY",
                    "placeVisit": {
                        "location": {"latitudeE7": 515500000, "longitudeE7": -700000},
                        "duration": {
                            "startTimestampMs": str(JUNE_2024_MS),
                            "endTimestampMs": str(JUNE_2024_MS + 40 * MINUTE_MS),
                        },
                    },
                },
            ]
        }

    @staticmethod
    def get_test_visit_list():
        """Mobile export visit list"""
        return [
            {
                "startTime": "2024-06-01T12:00:00.000Z",
                "endTime": "2024-06-01T13:00:00.000Z",
                "visit": {"topCandidate": {"placeLocation": "geo:51.537000,-0.056000"}},
            },
            {
                "startTime": "2024-06-02T12:00:00.000+01:00",
                "endTime": "2024-06-02T12:45:00.000+01:00",
                "visit": {"topCandidate": {"placeLocation": "geo:51.550000,-0.070000"}},
            },
            {
                "startTime": "2024-06-03T12:00:00Z",
                "endTime": "2024-06-03T13:00:00Z",
                "activity": {"start": "geo:51.5,-0.05", "end": "geo:51.6,-0.06"},
            },
        ]

    @classmethod
    def create_test_data_files(cls, test_dir: Path):
        """Write the pub list and one timeline file into the given directory"""
        test_dir.mkdir(exist_ok=True)

        with open(test_dir / 'pubs.geojson', 'w') as f:
            json.dump(cls.get_test_pubs(), f, indent=2)

        with open(test_dir / 'timeline.json', 'w') as f:
            json.dump(cls.get_test_timeline_objects(), f, indent=2)

        return True
