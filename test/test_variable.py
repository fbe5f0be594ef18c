from unittest import TestCase, main
from pandas import DataFrame

from censusmaps.variable import Variable, VariableCollection, VariableError
from census_fixtures import VARIABLES_JSON


class VariableTest(TestCase):
    def setUp(self) -> None:
        self.variables = VariableCollection(VARIABLES_JSON['variables'])

    def test_variable(self):
        v = self.variables.get('DP02_0151PE')
        self.assertIsInstance(v, Variable)
        self.assertEqual(v.group, 'DP02')
        self.assertEqual(v.path, ('Percent', 'COMPUTERS AND INTERNET USE', 'Total households'))
        self.assertEqual(v.readable_path, 'Percent -> COMPUTERS AND INTERNET USE -> Total households')
        self.assertTrue(v.is_percent)
        self.assertFalse(self.variables.get('DP02_0151E').is_percent)
        self.assertIsNone(self.variables.get('NAME').group)

    def test_collection(self):
        self.assertEqual(len(self.variables), 67)
        self.assertIn('GEO_ID', self.variables)
        self.assertIsNone(self.variables.get('DP99_0001PE'))
        self.assertIs(self.variables.get(self.variables.get('NAME')), self.variables.get('NAME'))

    def test_filter_percent(self):
        percentages = self.variables.filter_percent()
        self.assertEqual(len(percentages), 61)
        self.assertNotIn('DP02_0151E', percentages)
        self.assertTrue(all(v.is_percent for v in percentages))

    def test_filters(self):
        internet = self.variables.filter_by_term(['percent', 'internet'])
        self.assertEqual(internet.names, ['DP02_0151PE'])
        self.assertEqual(len(self.variables.filter_by_term('housing characteristics', by='concept')), 60)
        self.assertEqual(len(self.variables.filter_by_group('DP02')), 2)
        with self.assertRaises(ValueError):
            self.variables.filter_by_term('internet', by='group')

    def test_to_df(self):
        df = self.variables.filter_by_group('DP02').to_df()
        self.assertIsInstance(df, DataFrame)
        self.assertEqual(list(df.columns), ['name', 'label', 'concept', 'group', 'type'])
        self.assertEqual(list(df['type']), ['int', 'float'])

    def test_build_params(self):
        params = self.variables._build_variable_params(['DP02_0151PE', 'DP02_0151PE', 'NAME'])
        self.assertEqual(params, [{'get': 'DP02_0151PE,NAME,GEO_ID'}])

        params = self.variables._build_variable_params(self.variables.filter_by_group('DP04').to_list())
        self.assertEqual(len(params), 2)
        self.assertEqual(len(params[0]['get'].split(',')), 50)
        self.assertTrue(params[1]['get'].endswith('NAME,GEO_ID'))

        with self.assertRaises(VariableError):
            self.variables._build_variable_params(['DP99_0001PE'])


if __name__ == "__main__":
    main()
