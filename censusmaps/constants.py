# Census Data API annotation values. An estimate or margin of error equal to one of
# these is not a measurement; see
# https://www.census.gov/data/developers/data-sets/acs-1year/notes-on-acs-estimate-and-annotation-values.html
BAD_VALUES = [
    '-999999999',
    '-888888888',
    '-666666666',
    '-555555555',
    '-333333333',
    '-222222222',
    -999999999,
    -888888888,
    -666666666,
    -555555555,
    -333333333,
    -222222222,
]

CENSUS_API_ROOT = 'https://api.census.gov/data/'

BOUNDARY_ROOT = 'https://www2.census.gov/geo/tiger/'

# earliest year with national cartographic boundary zips under GENZ<year>
EARLIEST_BOUNDARY_YEAR = 2013

BOUNDARY_RESOLUTIONS = {'500k', '5m', '20m'}

# level -> (file token, identifier column, name column)
BOUNDARY_LEVELS = {
    'state': ('state', 'GEOID', 'NAME'),
    'county': ('county', 'GEOID', 'NAME'),
}

# vintage -> data profile percentage used for the 2013 vs. 2023 comparison in
# docs/tutorial.py. The Bureau renumbered the acronym between the two vintages.
TUTORIAL_PERCENT_VARIABLES = {
    2013: 'DP02_0151PE',
    2023: 'DP02_0153PE',
}
