from typing import Union, Dict, List
from pandas import DataFrame, json_normalize
from json.decoder import JSONDecodeError
from collections import defaultdict

from censusmaps.api import CensusClient, CensusAPIError
from censusmaps.variable import Variable, VariableCollection
from censusmaps.geography import GeographyCollection


class DatasetError(Exception):
    pass


class DatasetExplorer:
    """
    An object that explores the available Census API Datasets.

    Parameters
    ==========
    _dataset_json : :obj:`list` = None
        This parameter should only be used internally. Used for creating subsets of an
        already existing :class:`.DatasetExplorer`.
    **client_kwargs
        Passed on to :class:`.CensusClient` when the catalog is requested.
    """
    def __init__(self, _dataset_json: List[Dict] = None, **client_kwargs) -> None:
        if _dataset_json is None:
            census_client = CensusClient(url_extension='', **client_kwargs)
            try:
                datasets_resp = census_client.get_sync('data.json')
            finally:
                census_client.close_sync()
            self._datasets_json = datasets_resp.json()['dataset']
        else:
            self._datasets_json = _dataset_json

        self._dataset_map = {}
        for dataset_json in self._datasets_json:
            access_url = dataset_json['distribution'][0]['accessURL']
            url_extension = access_url.split('api.census.gov/data/', 1)[-1]
            dataset_json['url_extension'] = url_extension
            self._dataset_map[url_extension] = dataset_json

    def __len__(self):
        return len(self._dataset_map)

    def __repr__(self):
        return f"DatasetExplorer of {len(self)} datasets"

    def _mask(self, url_extensions: List[str]) -> 'DatasetExplorer':
        datasets_json = [self._dataset_map[url_extension] for url_extension in url_extensions]
        return DatasetExplorer(_dataset_json=datasets_json)

    def filter_by_year(self, start_year: int = None, end_year: int = None) -> 'DatasetExplorer':
        """
        Returns a new :class:`.DatasetExplorer` consisting of all datasets that match
        the year range. Datasets without a vintage (time series) are dropped.

        Parameters
        ==========
        start_year : :obj:`int` = None
            The earliest year for which to include datasets. If ``start_year`` is
            ``None``, then no such restriction is applied.
        end_year : :obj:`int` = None
            The latest year for which to include datasets. If ``end_year`` is
            ``None``, then no such restriction is applied.
        """
        url_extensions = []
        for url_extension, dataset_json in self._dataset_map.items():
            if 'c_vintage' in dataset_json:
                if (start_year is None or dataset_json['c_vintage'] >= start_year) and (end_year is None or dataset_json['c_vintage'] <= end_year):
                    url_extensions.append(url_extension)

        return self._mask(url_extensions=url_extensions)

    def filter_by_term(self, term: Union[str, List[str]], by: str = 'title') -> 'DatasetExplorer':
        """
        Returns a new :class:`.DatasetExplorer` consisting of all datasets that match
        the search. Can filter by each dataset's title or description.

        Parameters
        ==========
        term : :obj:`str` or :obj:`list` of :obj:`str`
            The search string or strings.
        by : :obj:`str` = 'title'
            If ``by`` is 'title', then datasets will be filtered by their titles.
            Otherwise, ``by`` should be 'description', and datasets will be filtered
            by their descriptions.
        """
        if isinstance(term, str):
            term = [term]

        if by != 'title' and by != 'description':
            raise ValueError("the 'by' parameter should either be 'title' or 'description'")

        url_extensions = []
        for url_extension, dataset_json in self._dataset_map.items():
            if all(t.lower() in dataset_json.get(by, '').lower() for t in term):
                url_extensions.append(url_extension)

        return self._mask(url_extensions=url_extensions)

    def to_df(self) -> DataFrame:
        """
        Converts the :class:`.DatasetExplorer` into a :class:`pandas.DataFrame` object
        detailing all of each datasets's attributes, indexed by URL extension and
        sorted by newest vintage first.
        """
        if len(self._datasets_json) == 0:
            return DataFrame()

        datasets_df = json_normalize(self._datasets_json, sep='_')
        column_renames = {c: c.removeprefix('c_') for c in datasets_df.columns if c.startswith('c_')}
        datasets_df = datasets_df.rename(columns=column_renames)

        if 'vintage' not in datasets_df.columns:
            datasets_df['vintage'] = None
        datasets_df['vintage'] = datasets_df['vintage'].astype('Int64')
        datasets_df = datasets_df.sort_values(by=['vintage', 'title'], ascending=[False, True], kind='stable').reset_index(drop=True)
        datasets_df.index = datasets_df['url_extension']
        datasets_df = datasets_df.drop(labels='url_extension', axis=1)

        return datasets_df


class Dataset:
    """
    A Census dataset (product) for a single vintage.

    Parameters
    ==========
    dataset : :obj:`str`
        The dataset path without the vintage, for example ``acs/acs1/profile`` for
        the American Community Survey 1-Year Data Profiles.

    vintage : :obj:`int` = None
        The survey year. ``None`` is only valid for time series datasets.

    census_api_key : :obj:`str` = None
        A Census API key. Can be obtained
        `here <https://api.census.gov/data/key_signup.html>`_. Not necessary unless you
        are making more than 500 requests per day.

    **client_kwargs
        Passed on to :class:`.CensusClient`.
    """
    def __init__(
        self,
        dataset: str,
        vintage: int = None,
        census_api_key: str = None,
        **client_kwargs
    ) -> None:

        self.dataset = dataset.strip('/')
        self.vintage = int(vintage) if vintage is not None else None
        self.url_extension = self._make_url_extension(dataset=self.dataset, vintage=self.vintage)
        self.census_client = CensusClient(url_extension=self.url_extension, api_key=census_api_key, **client_kwargs)

        try:
            self._geographies = self._find_supported_geographies()
            self._variables = self._find_variables()
        except CensusAPIError as e:
            self.census_client.close_sync()
            if e.status_code == 404:
                raise DatasetError(f"The dataset you requested - '{self.url_extension}' - does not exist.")
            raise e

    def __repr__(self):
        dataset_str = 'Dataset object\n'
        dataset_str += f'  URL extension: {self.url_extension}\n'
        dataset_str += f'  {len(self.geographies)} supported geographies\n'
        dataset_str += f'  {len(self.variables)} variables'
        return dataset_str

    def close(self) -> None:
        """
        Closes the connection to the Census API. Metadata already loaded stays
        available, but :meth:`.get` can no longer be called.
        """
        self.census_client.close_sync()

    @property
    def geographies(self) -> GeographyCollection:
        '''
        The collection of supported geographies for this dataset. Found by visiting
        ``https://api.census.gov/data/<url_extension>/geography.json``.
        '''
        return self._geographies

    @property
    def variables(self) -> VariableCollection:
        '''
        The collection of available variables for this dataset. Found by visiting
        ``https://api.census.gov/data/<url_extension>/variables.json``.
        '''
        return self._variables

    @staticmethod
    def _make_url_extension(dataset: str, vintage: int = None) -> str:
        if vintage is None:
            return dataset
        return f'{vintage}/{dataset}'

    def _find_supported_geographies(self) -> GeographyCollection:
        supported_geographies_response = self.census_client.get_sync('/geography.json')
        supported_geographies_json = supported_geographies_response.json()['fips']
        return GeographyCollection(supported_geographies_json)

    def _find_variables(self) -> VariableCollection:
        variables_json = self.census_client.get_sync('/variables.json').json()['variables']
        return VariableCollection(variables_json)

    def get(self, variables: Union[str, List[str], List[Variable]], region: str = 'state:*', region_in: str = None) -> DataFrame:
        """
        Get Census data for every geography matching ``region``. Every value is
        returned as text, exactly as the Census API sends it. ``NAME`` and ``GEO_ID``
        are always requested, and a ``GEOID`` column is derived from ``GEO_ID``.

        Parameters
        ==========
        variables : :obj:`str` or :obj:`list` of :obj:`str` or :obj:`list` of :class:`.Variable`
            The Census variables to get.

        region : :obj:`str` = 'state:*'
            The ``for`` clause of the request, for example ``state:*`` or
            ``county:001``.

        region_in : :obj:`str` = None
            The ``in`` clause of the request, for example ``state:06``.
        """
        if isinstance(variables, (str, Variable)):
            variables = [variables]

        # raises UnknownGeography for geographies this dataset does not publish
        self.geographies.get(name=region.split(':')[0])

        geography_params = {'for': region}
        if region_in:
            geography_params['in'] = region_in

        params_list = []
        for variable_params in self.variables._build_variable_params(variables=variables):
            params = {}
            params.update(variable_params)
            params.update(geography_params)
            params_list.append(params)
        url_params_list = zip(['']*len(params_list), params_list)
        responses = self.census_client.get_many_sync(url_params_list=url_params_list)

        dfs : List[DataFrame] = []
        for response in responses:
            if response.status_code == 200:
                try:
                    data = response.json()
                except JSONDecodeError:
                    raise DatasetError(f'There was a problem decoding the result of your Census API call. The following is the response from the Census API:\n\n{response.text}')
                dfs.append(DataFrame(data[1:], columns=data[0]))
            else: # status code must be 204 (empty response); only 200s and 204s are returned, all other statuses raise Exceptions
                pass

        if len(dfs) == 0:
            return DataFrame()

        intersecting_cols = set.intersection(*[set(df.columns) for df in dfs])
        df_id_cols = [col for col in dfs[0].columns if col in intersecting_cols]

        key_record_map = defaultdict(dict)
        for df in dfs:
            for record in df.to_dict(orient='records'):
                key = tuple(record[col] for col in df_id_cols)
                key_record_map[key].update(record)
        df = DataFrame.from_records(list(key_record_map.values()))
        df = df[[col for col in df.columns if col not in df_id_cols] + df_id_cols]

        if 'GEO_ID' in df.columns:
            df['GEOID'] = df['GEO_ID'].apply(lambda g : g.split('US')[1] if g != '0100000US' else g)

        return df


def list_datasets(filter_title: Union[str, List[str]] = None, vintage: int = None, **client_kwargs) -> DataFrame:
    """
    Lists the datasets available from the Census API.

    Parameters
    ==========
    filter_title : :obj:`str` or :obj:`list` of :obj:`str` = None
        Only datasets whose titles contain every term are listed.
    vintage : :obj:`int` = None
        Only datasets from this survey year are listed.
    """
    explorer = DatasetExplorer(**client_kwargs)
    if filter_title is not None:
        explorer = explorer.filter_by_term(term=filter_title, by='title')
    if vintage is not None:
        explorer = explorer.filter_by_year(start_year=vintage, end_year=vintage)
    return explorer.to_df()


def list_variables(dataset: str, vintage: int, filter_label: Union[str, List[str]] = None, percent_only: bool = False, census_api_key: str = None, **client_kwargs) -> DataFrame:
    """
    Lists the variables of a dataset, for example to find the acronym the Bureau used
    for a concept in a given vintage.

    Parameters
    ==========
    dataset : :obj:`str`
        The dataset path without the vintage, for example ``acs/acs1/profile``.
    vintage : :obj:`int`
        The survey year.
    filter_label : :obj:`str` or :obj:`list` of :obj:`str` = None
        Only variables whose labels contain every term are listed.
    percent_only : :obj:`bool` = False
        If ``True``, only percentage estimates are listed.
    """
    d = Dataset(dataset=dataset, vintage=vintage, census_api_key=census_api_key, **client_kwargs)
    d.close()

    variables = d.variables
    if filter_label is not None:
        variables = variables.filter_by_term(term=filter_label, by='label')
    if percent_only:
        variables = variables.filter_percent()
    return variables.to_df()


def list_geographies(dataset: str, vintage: int, census_api_key: str = None, **client_kwargs) -> DataFrame:
    """
    Lists the geographies a dataset publishes estimates for.

    Parameters
    ==========
    dataset : :obj:`str`
        The dataset path without the vintage, for example ``acs/acs1/profile``.
    vintage : :obj:`int`
        The survey year.
    """
    d = Dataset(dataset=dataset, vintage=vintage, census_api_key=census_api_key, **client_kwargs)
    d.close()
    return d.geographies.to_df()


def fetch_data(dataset: str, vintage: int, variables: Union[str, List[str]], region: str = 'state:*', region_in: str = None, census_api_key: str = None, **client_kwargs) -> DataFrame:
    """
    Fetches raw survey rows. See :meth:`.Dataset.get`.

    Parameters
    ==========
    dataset : :obj:`str`
        The dataset path without the vintage, for example ``acs/acs1/profile``.
    vintage : :obj:`int`
        The survey year.
    variables : :obj:`str` or :obj:`list` of :obj:`str`
        The Census variables to get.
    region : :obj:`str` = 'state:*'
        The ``for`` clause of the request.
    region_in : :obj:`str` = None
        The ``in`` clause of the request.
    """
    d = Dataset(dataset=dataset, vintage=vintage, census_api_key=census_api_key, **client_kwargs)
    try:
        return d.get(variables=variables, region=region, region_in=region_in)
    finally:
        d.close()
