from unittest import TestCase, main
from tempfile import TemporaryDirectory
from contextlib import redirect_stdout
from io import StringIO
from os import path, listdir, makedirs
from zipfile import ZipFile
from httpx import Response, MockTransport
from geopandas import GeoDataFrame
from shapely.geometry import box

from censusmaps.boundaries import BoundaryProvider, BoundaryError, join_with_boundaries, shift_geometry
from censusmaps.api import BoundaryDownloadError
from censusmaps.normalize import normalize


def make_states() -> GeoDataFrame:
    return GeoDataFrame(
        {
            'STATEFP': ['01', '06', '02'],
            'GEOID': ['01', '06', '02'],
            'NAME': ['Alabama', 'California', 'Alaska'],
        },
        geometry=[box(-88, 31, -85, 35), box(-124, 33, -115, 41), box(-160, 58, -142, 68)],
        crs='EPSG:4326'
    )


class JoinTest(TestCase):
    def setUp(self) -> None:
        self.boundaries = make_states()
        self.snapshot = normalize([
            {'GEOID': '06', 'NAME': 'California', 'DP02_0151PE': '81.2'},
            {'GEOID': '01', 'NAME': 'Alabama', 'DP02_0151PE': '76.5'},
            {'GEOID': '72', 'NAME': 'Puerto Rico', 'DP02_0151PE': 'N/A'},
        ], percent_column='DP02_0151PE', vintage=2013)

    def test_join_by_geo_id(self):
        joined = join_with_boundaries(self.snapshot, boundaries=self.boundaries)
        self.assertIsInstance(joined, GeoDataFrame)
        self.assertEqual(list(joined.columns), ['geo_id', 'geography_name', 'percent_value', 'geometry'])
        self.assertEqual(list(joined['geography_name']), ['Alabama', 'California'])
        self.assertEqual(joined.crs, self.boundaries.crs)
        self.assertTrue(joined.geometry.iloc[1].equals(box(-124, 33, -115, 41)))

    def test_join_by_name(self):
        joined = join_with_boundaries(self.snapshot, by='name', boundaries=self.boundaries)
        self.assertEqual(list(joined['geo_id']), ['01', '06'])

    def test_left_join(self):
        joined = join_with_boundaries(self.snapshot, how='left', boundaries=self.boundaries)
        self.assertEqual(len(joined), 3)
        self.assertTrue(joined.geometry.isna().iloc[2])

    def test_invalid_arguments(self):
        with self.assertRaises(BoundaryError):
            join_with_boundaries(self.snapshot, geography_level='tract', boundaries=self.boundaries)
        with self.assertRaises(ValueError):
            join_with_boundaries(self.snapshot, by='fips', boundaries=self.boundaries)
        with self.assertRaises(ValueError):
            join_with_boundaries(self.snapshot, how='outer', boundaries=self.boundaries)

    def test_name_join_needs_unique_names(self):
        boundaries = make_states()
        boundaries.loc[2, 'NAME'] = 'California'
        with self.assertRaises(BoundaryError):
            join_with_boundaries(self.snapshot, by='name', boundaries=boundaries)

    def test_year_required(self):
        snapshot = normalize([{'GEOID': '06', 'NAME': 'California', 'P': '81.2'}], percent_column='P')
        with self.assertRaises(ValueError):
            join_with_boundaries(snapshot)


class CountyJoinTest(TestCase):
    def setUp(self) -> None:
        self.counties = GeoDataFrame(
            {
                'STATEFP': ['01', '05'],
                'GEOID': ['01129', '05143'],
                'NAME': ['Washington', 'Washington'],
            },
            geometry=[box(-88.5, 31, -88, 31.5), box(-94.5, 35.8, -94, 36.2)],
            crs='EPSG:4326'
        )
        self.snapshot = normalize([
            {'GEOID': '05143', 'NAME': 'Washington County, Arkansas', 'P': '88.0'},
            {'GEOID': '01129', 'NAME': 'Washington County, Alabama', 'P': '71.5'},
        ], percent_column='P', vintage=2023)

    def test_join_by_geo_id(self):
        joined = join_with_boundaries(self.snapshot, geography_level='county', boundaries=self.counties)
        self.assertEqual(len(joined), 2)
        self.assertEqual(list(joined['geo_id']), ['01129', '05143'])
        self.assertTrue(joined.geometry.iloc[1].equals(box(-94.5, 35.8, -94, 36.2)))

    def test_join_by_name_rejected(self):
        with self.assertRaises(BoundaryError):
            join_with_boundaries(self.snapshot, geography_level='county', by='name', boundaries=self.counties)

    def test_repeated_boundary_ids(self):
        counties = self.counties.copy()
        counties.loc[1, 'GEOID'] = '01129'
        with self.assertRaises(BoundaryError):
            join_with_boundaries(self.snapshot, geography_level='county', boundaries=counties)


class BoundaryProviderTest(TestCase):
    def setUp(self) -> None:
        self.tmp = TemporaryDirectory()
        self.output_dir = path.join(self.tmp.name, 'shapes')
        self.requested = []
        self.zip_bytes = self._zipped_states()

        def handler(request):
            self.requested.append(request.url.path)
            if request.url.path == '/geo/tiger/GENZ2023/shp/cb_2023_us_state_500k.zip':
                return Response(200, content=self.zip_bytes)
            return Response(404, text='Not Found')

        self.transport = MockTransport(handler)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def _zipped_states(self) -> bytes:
        shp_dir = path.join(self.tmp.name, 'build')
        makedirs(shp_dir)
        make_states().to_file(path.join(shp_dir, 'cb_2023_us_state_500k.shp'))
        zip_path = path.join(self.tmp.name, 'states.zip')
        with ZipFile(zip_path, 'w') as z:
            for f in listdir(shp_dir):
                z.write(path.join(shp_dir, f), arcname=f)
        with open(zip_path, 'rb') as f:
            return f.read()

    def test_urls(self):
        self.assertEqual(BoundaryProvider(year=2023).url('state'), 'GENZ2023/shp/cb_2023_us_state_500k.zip')
        self.assertEqual(BoundaryProvider(year=2013, resolution='20m').url('county'), 'GENZ2013/cb_2013_us_county_20m.zip')

    def test_early_year_falls_back(self):
        out = StringIO()
        with redirect_stdout(out):
            provider = BoundaryProvider(year=2010)
        self.assertEqual(provider.year, 2013)
        self.assertIn('2013', out.getvalue())

    def test_invalid_options(self):
        with self.assertRaises(BoundaryError):
            BoundaryProvider(year=2023, resolution='1m')
        with self.assertRaises(BoundaryError):
            BoundaryProvider(year=2023).file_name('tract')

    def test_download_is_cached(self):
        provider = BoundaryProvider(year=2023, output_dir=self.output_dir, transport=self.transport)
        first = provider.download('state')
        second = provider.download('state')
        self.assertEqual(first, second)
        self.assertEqual(path.basename(first), 'cb_2023_us_state_500k.zip')
        self.assertEqual(len(self.requested), 1)
        self.assertEqual(listdir(self.output_dir), ['cb_2023_us_state_500k.zip'])

    def test_states(self):
        states = BoundaryProvider(year=2023, output_dir=self.output_dir, transport=self.transport).states()
        self.assertIsInstance(states, GeoDataFrame)
        self.assertEqual(sorted(states['NAME']), ['Alabama', 'Alaska', 'California'])

    def test_join_downloads_boundaries(self):
        snapshot = normalize([{'GEOID': '06', 'NAME': 'California', 'P': '81.2'}], percent_column='P', vintage=2023)
        provider = BoundaryProvider(year=2023, output_dir=self.output_dir, transport=self.transport)
        provider.download('state')
        joined = join_with_boundaries(snapshot, output_dir=self.output_dir)
        self.assertEqual(list(joined['geo_id']), ['06'])

    def test_close(self):
        provider = BoundaryProvider(year=2023, output_dir=self.output_dir, transport=self.transport)
        provider.close()
        provider.states()
        loop_handler = provider.boundary_client._loop_handler
        provider.close()
        self.assertFalse(loop_handler.is_alive())
        self.assertIsNone(provider._boundary_client)

    def test_missing_file(self):
        provider = BoundaryProvider(year=2023, output_dir=self.output_dir, transport=self.transport)
        with self.assertRaises(BoundaryDownloadError):
            provider.counties()
        self.assertFalse(path.exists(path.join(self.output_dir, 'cb_2023_us_county_500k.zip')))


class ShiftGeometryTest(TestCase):
    def setUp(self) -> None:
        self.states = make_states().rename(columns={'GEOID': 'geo_id'})

    def test_shift(self):
        shifted = shift_geometry(self.states)
        self.assertEqual(shifted.crs, self.states.crs)

        california = shifted[shifted['geo_id'] == '06'].geometry.iloc[0]
        self.assertTrue(california.equals_exact(self.states.geometry.iloc[1], tolerance=1e-6))

        alaska_before = self.states.geometry.iloc[2].centroid
        alaska_after = shifted[shifted['geo_id'] == '02'].geometry.iloc[0].centroid
        self.assertGreater(alaska_before.distance(alaska_after), 1)

        self.assertTrue(self.states.geometry.iloc[2].equals(box(-160, 58, -142, 68)))

    def test_invalid_options(self):
        with self.assertRaises(ValueError):
            shift_geometry(self.states, position='above')
        with self.assertRaises(BoundaryError):
            shift_geometry(GeoDataFrame(self.states.drop(columns='geometry'), geometry=list(self.states.geometry)))


if __name__ == "__main__":
    main()
