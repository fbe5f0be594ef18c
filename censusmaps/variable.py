from typing import List, Dict, Union
from pandas import DataFrame


class VariableError(Exception):
    pass


class Variable:
    """
    An object representing a single Census variable.

    Parameters
    ==========
    name : :obj:`str`
        The name (acronym) of the variable, for example ``DP02_0151PE``.
    info : dict of :obj:`str`: :obj:`str`
        A dictionary detailing the attributes of the variable, as found in a
        dataset's ``variables.json``.

    Attributes
    ==========
    label : :obj:`str` or None
        The label (description) of the variable, for example
        ``Percent!!COMPUTERS AND INTERNET USE!!Total households``.
    group : :obj:`str` or None
        The Census group (table) the variable belongs to.
    concept : :obj:`str` or None
        The concept of the Census group the variable belongs to.
    type : :obj:`str` or None
        The predicate type (``int``, ``float``, ``string``) of the variable.
    path : :obj:`tuple` of :obj:`str`
        The label of the variable split up into clean, individual pieces.
    readable_path : :obj:`str`
        The elements of the path of this variable joined by " -> ".
    """
    def __init__(self, name: str, info: Dict[str, str]) -> None:
        self.name = name
        self.info = info
        self.label = info.get('label', name)
        self.group = info.get('group', None)
        if self.group == 'N/A' or self.group == 'n/a':
            self.group = None
        self.concept = info.get('concept', None)
        self.type = info.get('predicateType', None)
        self.attributes = info.get('attributes', None)

        self.path = tuple(p.replace(':', '').strip() for p in self.label.split('!!'))
        self.readable_path = ' -> '.join(self.path)

    def __repr__(self) -> str:
        return f'{self.name}\n  group: {self.group}\n  concept: {self.concept}\n  path: [{self.readable_path}]\n'

    @property
    def is_percent(self) -> bool:
        """
        Whether the variable is a percentage estimate. The Bureau marks these with a
        ``PE`` suffix and a label starting with ``Percent``.
        """
        return self.name.endswith('PE') or self.label.lower().startswith('percent')


class VariableCollection:
    """
    An object that represents a collection of :class:`.Variable` objects.

    Parameters
    ==========
    variables_json : dict of :obj:`str`: (dict of :obj:`str`: :obj:`str`)
        A dictionary detailing the attributes of each variable.
    """
    def __init__(self, variables_json: Dict[str, Dict[str, str]]) -> None:
        self._variable_map : Dict[str, Variable] = {}
        for v_name in sorted(variables_json.keys()):
            self._variable_map[v_name] = Variable(name=v_name, info=variables_json[v_name])

    def __iter__(self):
        return iter(self._variable_map.values())

    def __len__(self):
        return len(self._variable_map)

    def __contains__(self, variable: str) -> bool:
        return variable in self._variable_map

    def __repr__(self):
        var_collection_str = f'VariableCollection of {len(self)} variables:\n'
        if len(self) > 5:
            for v in self.to_list()[:2]:
                var_collection_str += f'{v}'

            var_collection_str += '\n...\n\n'

            for v in self.to_list()[-2:]:
                var_collection_str += f'{v}'
        elif len(self) > 0:
            for v in self.to_list():
                var_collection_str += f'{v}'
        return var_collection_str

    def _build_variable_params(self, variables: Union[List[str], List[Variable]], chunk_size: int = 48) -> List[Dict[str, str]]:
        variable_names = [v.name if isinstance(v, Variable) else v for v in variables]

        missing = [v for v in variable_names if v not in self._variable_map]
        if missing:
            raise VariableError(f'The following variables do not exist: {missing}')

        unique_variable_names = []
        for v_n in variable_names:
            if v_n not in unique_variable_names and v_n not in ('NAME', 'GEO_ID'):
                unique_variable_names.append(v_n)

        id_names = [v_n for v_n in ('NAME', 'GEO_ID') if v_n in self._variable_map]

        chunks = [unique_variable_names[i:i + chunk_size] for i in range(0, len(unique_variable_names), chunk_size)]
        if len(chunks) == 0:
            chunks = [[]]

        # every chunk carries the identifier columns so the results can be merged
        return [{'get': ','.join(chunk + id_names)} for chunk in chunks]

    def _mask(self, variables: List[Union[str, Variable]]) -> 'VariableCollection':
        variables = [v.name if isinstance(v, Variable) else v for v in variables]
        return VariableCollection({v_name: self._variable_map[v_name].info for v_name in variables if v_name in self._variable_map})

    @property
    def names(self) -> List[str]:
        """
        A list of the names of each variable in the collection.
        """
        return list(self._variable_map.keys())

    def get(self, variable: Union[str, Variable]) -> Variable:
        """
        Returns the requested :class:`.Variable` object if it exists. Otherwise, returns
        ``None``.

        Parameters
        ==========
        variable : :obj:`str` or :class:`.Variable`
            The requested variable.
        """
        if isinstance(variable, Variable):
            variable = variable.name
        return self._variable_map.get(variable, None)

    def filter_by_term(self, term: Union[str, List[str]], by: str = 'label') -> 'VariableCollection':
        """
        Returns a new :class:`.VariableCollection` consisting of all variables
        that match the search. Matching is case-insensitive, and when ``term`` is a
        list, only variables that contain **all** terms are kept.

        Parameters
        ==========
        term : :obj:`str` or :obj:`list` of :obj:`str`
            The search string or strings.
        by : :obj:`str` = 'label'
            If ``by`` is 'label', then variables will be filtered by their labels.
            Otherwise, ``by`` should be 'concept', and variables will be filtered
            by the concepts of their groups.
        """
        if isinstance(term, str):
            term = [term]

        terms = [t.lower() for t in term]
        if by == 'label':
            v_names = [v.name for v in self if all(t in v.label.lower() for t in terms)]
        elif by == 'concept':
            v_names = [v.name for v in self if v.concept is not None and all(t in v.concept.lower() for t in terms)]
        else:
            raise ValueError("'by' should either be 'label' or 'concept'")
        return self._mask(v_names)

    def filter_by_group(self, group: str) -> 'VariableCollection':
        """
        Returns a new :class:`.VariableCollection` consisting of all variables within
        the given group.

        Parameters
        ==========
        group : :obj:`str`
            The group (table) to return, for example ``DP02``.
        """
        return self._mask([v.name for v in self if v.group == group])

    def filter_percent(self) -> 'VariableCollection':
        """
        Returns a new :class:`.VariableCollection` consisting of the percentage
        estimates only. See :attr:`.Variable.is_percent`.
        """
        return self._mask([v.name for v in self if v.is_percent])

    def to_df(self) -> DataFrame:
        """
        Converts the :class:`.VariableCollection` into a :class:`pandas.DataFrame`
        object detailing each variable's name, label, concept, group and type.
        """
        var_dicts = []
        for v_name, v in self._variable_map.items():
            var_dicts += [{
                'name': v_name,
                'label': v.label,
                'concept': v.concept,
                'group': v.group,
                'type': v.type,
            }]

        return DataFrame(var_dicts, columns=['name', 'label', 'concept', 'group', 'type'])

    def to_list(self) -> List[Variable]:
        """
        Converts the :class:`.VariableCollection` into a :obj:`list` of :class:`.Variable`
        objects.
        """
        return list(self._variable_map.values())
