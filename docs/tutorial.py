from censusmaps import list_datasets, list_variables, list_geographies, fetch_data
print(list_datasets(filter_title='ACS 1-Year Data Profiles'))

print(list_variables(dataset='acs/acs1/profile', vintage=2013, filter_label=['percent', 'computer']))
print(list_variables(dataset='acs/acs1/profile', vintage=2023, filter_label=['percent', 'computer']))

print(list_geographies(dataset='acs/acs1/profile', vintage=2023))

from censusmaps.constants import TUTORIAL_PERCENT_VARIABLES

raw_tables = {}
for vintage, variable in TUTORIAL_PERCENT_VARIABLES.items():
    raw_tables[vintage] = fetch_data(dataset='acs/acs1/profile', vintage=vintage, variables=[variable], region='state:*')
print(raw_tables[2013])

from censusmaps import normalize_many, compare_snapshots

snapshots = normalize_many(raw_tables, percent_columns=TUTORIAL_PERCENT_VARIABLES)
print(snapshots[2013])
print(snapshots[2023])

print(compare_snapshots(snapshots[2013], snapshots[2023]))

from censusmaps import join_with_boundaries, shift_geometry, render, compose
import matplotlib.pyplot as plt

maps = []
for vintage, snapshot in snapshots.items():
    data = join_with_boundaries(snapshot, geography_level='state', output_dir='boundaries')
    data = shift_geometry(data)
    maps.append(render(data, title=str(vintage), cmap='Blues'))

fig = compose(maps, suptitle='Households with a computer (%)')
plt.savefig('source/computer_households.png', transparent=True, dpi=200)
