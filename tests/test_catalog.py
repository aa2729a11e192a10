import json
import pytest
import requests
from core.catalog import PubCatalog, feature_to_point, parse_feature_collection
from core.errors import CatalogUnavailable
from core.models import PointOfInterest
from tests.fixtures import TestDataFixtures
from unittest.mock import Mock, patch


class TestFeatureMapping:
    """Test suite for GeoJSON feature to pub conversion"""

    def test_fallback_chains(self):
        """Name and postcode come from tags, then properties, then defaults"""
        points = parse_feature_collection(TestDataFixtures.get_test_pubs())

        assert points == (
            PointOfInterest("node/101", 51.5370, -0.0560, "The Cat & Mutton", "E8 4DG"),
            PointOfInterest("node/102", 51.53702, -0.05607, "The Dove", "E8 4QA"),
            PointOfInterest("node/103", 51.5500, -0.0700, "Unnamed pub", ""),
        )

    def test_id_fallbacks(self):
        """Ids come from the feature, then @id, then id, then position"""
        geometry = {"type": "Point", "coordinates": [0, 0]}

        assert feature_to_point({"properties": {"@id": "way/9"}, "geometry": geometry}, 0).id == "way/9"
        assert feature_to_point({"properties": {"id": 77}, "geometry": geometry}, 0).id == "77"
        assert feature_to_point({"properties": {}, "geometry": geometry}, 4).id == "feature/4"

    def test_label(self):
        """Postcode is appended only when present"""
        assert PointOfInterest("a", 0, 0, "The Dove", "E8 4QA").label == "The Dove (E8 4QA)"
        assert PointOfInterest("b", 0, 0, "The Dove").label == "The Dove"

    def test_features_without_points_skipped(self):
        """Features without usable coordinates are left out"""
        data = {
            "features": [
                {"id": "a", "geometry": None},
                {"id": "b", "geometry": {"coordinates": [1]}},
                {"id": "c", "geometry": {"coordinates": ["x", "y"]}},
                {"id": "d", "geometry": {"coordinates": [-0.05, 51.5]}},
                "junk",
            ]
        }
        points = parse_feature_collection(data)
        assert [p.id for p in points] == ["d"]

    def test_duplicate_ids_keep_first(self):
        """Later features reusing an id are ignored"""
        data = {
            "features": [
                {"id": "a", "properties": {"name": "First"}, "geometry": {"coordinates": [0, 0]}},
                {"id": "a", "properties": {"name": "Second"}, "geometry": {"coordinates": [1, 1]}},
            ]
        }
        points = parse_feature_collection(data)
        assert len(points) == 1
        assert points[0].name == "First"

    @pytest.mark.parametrize(
        "feature",
        [
            {"id": "n/1", "properties": "oops", "geometry": {"coordinates": [0, 0]}},
            {"id": "n/1", "properties": {}, "geometry": [0, 0]},
            {"id": "n/1", "properties": {"tags": ["name", "The Dove"]}, "geometry": {"coordinates": [0, 0]}},
        ],
    )
    def test_malformed_feature_skipped(self, feature):
        """Features whose parts are not objects are skipped, not fatal"""
        good = {"id": "n/2", "properties": {"name": "The Dove"}, "geometry": {"coordinates": [-0.05, 51.5]}}

        assert feature_to_point(feature, 0) is None
        assert [p.id for p in parse_feature_collection({"features": [feature, good]})] == ["n/2"]

    def test_zero_id_kept(self):
        """A numeric id of zero is a real id"""
        feature = {"id": 0, "properties": {"@id": "node/9"}, "geometry": {"coordinates": [0, 0]}}
        assert feature_to_point(feature, 5).id == "0"

    @pytest.mark.parametrize("data", [{}, [], {"features": "nope"}, None])
    def test_not_a_feature_collection(self, data):
        """Payloads without a features list are rejected"""
        with pytest.raises(CatalogUnavailable):
            parse_feature_collection(data)


class TestPubCatalog:
    """Test suite for the cached pub catalog"""

    @pytest.fixture
    def catalog_file(self, tmp_path):
        """Write the sample pub list to disk"""
        path = tmp_path / "pubs.geojson"
        with open(path, 'w') as f:
            json.dump(TestDataFixtures.get_test_pubs(), f)
        return path

    def test_load_from_file(self, catalog_file):
        """Pubs load from a local GeoJSON file"""
        catalog = PubCatalog(catalog_file)
        assert not catalog.is_loaded

        points = catalog.load()
        assert catalog.is_loaded
        assert len(points) == 3
        assert points[1].name == "The Dove"

    def test_second_load_returns_same_instance(self, catalog_file):
        """The list is read once and cached"""
        catalog = PubCatalog(catalog_file)
        first = catalog.load()

        catalog_file.unlink()
        assert catalog.load() is first

    def test_reset(self, catalog_file):
        """Reset returns the catalog to uninitialized"""
        catalog = PubCatalog(catalog_file)
        catalog.load()
        catalog.reset()

        assert not catalog.is_loaded
        assert len(catalog.load()) == 3

    def test_preloaded_features(self):
        """A parsed feature collection can be handed in directly"""
        catalog = PubCatalog(source=None, features=TestDataFixtures.get_test_pubs())
        assert [p.id for p in catalog.load()] == ["node/101", "node/102", "node/103"]

    def test_missing_file(self, tmp_path):
        """A missing file is CatalogUnavailable"""
        catalog = PubCatalog(tmp_path / "missing.geojson")
        with pytest.raises(CatalogUnavailable):
            catalog.load()
        assert not catalog.is_loaded

    def test_invalid_json(self, tmp_path):
        """Malformed payloads are CatalogUnavailable"""
        path = tmp_path / "pubs.geojson"
        path.write_text("{broken")

        with pytest.raises(CatalogUnavailable):
            PubCatalog(path).load()

    def test_not_utf8(self, tmp_path):
        """Files that are not UTF-8 are CatalogUnavailable"""
        path = tmp_path / "pubs.geojson"
        path.write_bytes(b'\xff\xfe\xfa{"features": []}')

        catalog = PubCatalog(path)
        with pytest.raises(CatalogUnavailable):
            catalog.load()
        assert not catalog.is_loaded

    def test_failed_load_leaves_nothing_cached(self, tmp_path):
        """A failed load can be retried once the source is fixed"""
        path = tmp_path / "pubs.geojson"
        path.write_text('{"features": "nope"}')
        catalog = PubCatalog(path)

        with pytest.raises(CatalogUnavailable):
            catalog.load()
        assert not catalog.is_loaded

        with open(path, 'w') as f:
            json.dump(TestDataFixtures.get_test_pubs(), f)
        assert len(catalog.load()) == 3

    def test_no_source(self):
        """A catalog with no source cannot load"""
        with pytest.raises(CatalogUnavailable):
            PubCatalog(source=None).load()

    @patch('core.catalog.requests.get')
    def test_load_from_url(self, mock_get):
        """http(s) sources are fetched once"""
        mock_response = Mock()
        mock_response.json.return_value = TestDataFixtures.get_test_pubs()
        mock_get.return_value = mock_response

        catalog = PubCatalog("https://example.org/pubs-gb.geojson", timeout=5)
        assert len(catalog.load()) == 3
        catalog.load()

        mock_get.assert_called_once_with("https://example.org/pubs-gb.geojson", timeout=5)
        mock_response.raise_for_status.assert_called_once()

    @patch('core.catalog.requests.get')
    def test_url_http_error(self, mock_get):
        """Non-2xx responses are CatalogUnavailable"""
        mock_response = Mock()
        mock_response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
        mock_get.return_value = mock_response

        catalog = PubCatalog("https://example.org/pubs-gb.geojson")
        with pytest.raises(CatalogUnavailable):
            catalog.load()
        assert not catalog.is_loaded

    @patch('core.catalog.requests.get')
    def test_url_connection_error(self, mock_get):
        """Network failures are CatalogUnavailable"""
        mock_get.side_effect = requests.ConnectionError("offline")

        with pytest.raises(CatalogUnavailable):
            PubCatalog("http://example.org/pubs.geojson").load()
