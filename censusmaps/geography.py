from typing import Dict, List, Any, Union
from pandas import DataFrame


class UnknownGeography(Exception):
    pass


class Geography:
    """
    An object representing a single Census geography hierarchy.

    Parameters
    ==========
    params : :obj:`dict` of :obj:`str`: :obj:`Any`
        A set of parameters detailing the attributes of the Census geography hierarchy,
        as found in a dataset's ``geography.json``.

    Attributes
    ==========
    name : :obj:`str` or None
        The name of the geography hierarchy. For example, ``us``, ``region``,
        ``state``, ``county``, etc.
    level : :obj:`str` or None
        The summary level code of the geography hierarchy, for example ``040``.
    requires : :obj:`list` of :obj:`str`
        A list of other Census geography hierarchies that this hierarchy depends on.
        For example, ``county`` may require ``state``.
    wildcard : :obj:`list` of :obj:`str`
        Required hierarchies that may be given as a wildcard.
    readable_path : :obj:`str`
        The required hierarchies and the name joined by " -> ".
    """
    def __init__(self, params: Dict[str, Any]) -> None:
        self.params = params
        self.name = params.get('name', None)
        self.level = params.get('geoLevelDisplay', None)
        self.requires = params.get('requires', [])
        self.wildcard = params.get('wildcard', [])

        self.path = tuple(self.requires) + (self.name,)
        self.readable_path = ' -> '.join(self.path)

    def __repr__(self) -> str:
        return f'{self.name} ({self.level})\n  requires: {self.requires}\n  wildcards: {self.wildcard}\n  path: [{self.readable_path}]\n'


class GeographyCollection:
    """
    An object representing a collection of available Census geography hierarchies.

    Parameters
    ==========
    supported_geographies_json : list of (dict of :obj:`str`: :obj:`Any`)
        A list detailing the attributes of each geography hierarchy.
    """
    def __init__(self, supported_geographies_json: List[Dict[str, Any]]) -> None:
        self._geographies : List[Geography] = [Geography(g) for g in supported_geographies_json]

    def __iter__(self):
        return iter(self._geographies)

    def __len__(self):
        return len(self._geographies)

    def __repr__(self):
        geo_collection_str = f'GeographyCollection of {len(self)} geographies:\n'
        for g in self._geographies[:5]:
            geo_collection_str += f'{g}'
        if len(self) > 5:
            geo_collection_str += '\n...\n'
        return geo_collection_str

    def get(self, level: str = None, name: str = None) -> Union[Geography, List[Geography]]:
        """
        Returns the requested :class:`.Geography` object if it exists, or a list of
        :class:`.Geography` objects if there are multiple matches. Otherwise, raises
        an :class:`.UnknownGeography` exception. Can search by level or name.

        Parameters
        ==========
        level : :obj:`str`
            The requested geography hierarchy represented by its level.
        name : :obj:`str`
            The requested geography hierarchy represented by its name. Note that since
            the same name may refer to multiple geographies, specifying a name may
            return a list.
        """
        if not ((level and not name) or (not level and name)):
            raise ValueError("must only provide a 'level' or a 'name'.")
        if level:
            matches = [g for g in self._geographies if g.level == level]
            if len(matches) > 0:
                return matches[0]
            raise UnknownGeography(f'The requested geographic level ({level}) is not available for this dataset.')

        matches = [g for g in self._geographies if g.name == name]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 0:
            return matches
        raise UnknownGeography(f"The current dataset does not have geography '{name}'")

    def to_df(self) -> DataFrame:
        """
        Converts the :class:`.GeographyCollection` into a :class:`pandas.DataFrame`
        object detailing each geography's name, level, and requirements.
        """
        geo_dicts = [{'name': g.name, 'level': g.level, 'requirements': g.requires, 'wildcard': g.wildcard} for g in self._geographies]
        df = DataFrame(geo_dicts, columns=['name', 'level', 'requirements', 'wildcard'])
        return df.sort_values(by='level', kind='stable').reset_index(drop=True)

    def to_list(self) -> List[Geography]:
        """
        Converts the :class:`.GeographyCollection` into a :obj:`list` of
        :class:`.Geography` objects.
        """
        return list(self._geographies)
