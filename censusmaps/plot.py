from typing import List, Tuple
from math import ceil
from geopandas import GeoDataFrame
from matplotlib.axes import Axes
from matplotlib.figure import Figure
import matplotlib.pyplot as plt


DEFAULT_STYLE = {
    'cmap': 'viridis',
    'edgecolor': 'white',
    'linewidth': 0.3,
    'legend': True,
    'missing_color': 'lightgrey',
}


class ChoroplethMap:
    """
    A choropleth map that has not been drawn yet. Created with :func:`.render` and
    drawn onto a :class:`matplotlib.axes.Axes` with :meth:`.draw`, either on its own
    or as one panel of :func:`.compose`.

    Parameters
    ==========
    data : :class:`geopandas.GeoDataFrame`
        The data to map, usually the result of
        :func:`censusmaps.boundaries.join_with_boundaries`.
    column : :obj:`str` = 'percent_value'
        The column that decides the shade of each geography.
    title : :obj:`str` = None
        The title of the map.
    **style_options
        Any option accepted by :meth:`geopandas.GeoDataFrame.plot` (``cmap``,
        ``edgecolor``, ``linewidth``, ``legend``, ``vmin``, ``vmax``, ...) plus
        ``missing_color``, the fill of geographies with no value.
    """
    def __init__(self, data: GeoDataFrame, column: str = 'percent_value', title: str = None, **style_options) -> None:
        if not isinstance(data, GeoDataFrame):
            raise TypeError('Only a geopandas.GeoDataFrame can be rendered. Join your data with boundaries first.')
        if column not in data.columns:
            raise ValueError(f"The column '{column}' is not in the data.")

        self.data = data
        self.column = column
        self.title = title
        self.style_options = style_options

    def __repr__(self) -> str:
        return f'ChoroplethMap of {len(self.data)} geographies\n  column: {self.column}\n  title: {self.title}\n'

    def value_range(self) -> Tuple[float, float]:
        """
        The smallest and largest non-null value of the mapped column, or
        ``(None, None)`` when every value is null.
        """
        values = self.data[self.column].dropna()
        if len(values) == 0:
            return None, None
        return float(values.min()), float(values.max())

    def draw(self, ax: Axes = None, vmin: float = None, vmax: float = None) -> Axes:
        """
        Draws the map and returns the axes it was drawn on.

        Parameters
        ==========
        ax : :class:`matplotlib.axes.Axes` = None
            The axes to draw on. A new figure is created if ``ax`` is ``None``.
        vmin : :obj:`float` = None
            Lower end of the colour scale. Overrides the ``vmin`` style option.
        vmax : :obj:`float` = None
            Upper end of the colour scale. Overrides the ``vmax`` style option.
        """
        if ax is None:
            _, ax = plt.subplots()

        options = dict(DEFAULT_STYLE)
        options.update(self.style_options)
        missing_color = options.pop('missing_color')
        if vmin is not None:
            options['vmin'] = vmin
        if vmax is not None:
            options['vmax'] = vmax
        if options['legend'] and 'scheme' not in options:
            options.setdefault('legend_kwds', {'label': 'Percent', 'orientation': 'horizontal', 'shrink': 0.6})

        self.data.plot(column=self.column, ax=ax, missing_kwds={'color': missing_color}, **options)
        ax.set_axis_off()
        if self.title:
            ax.set_title(self.title)

        return ax


def render(data: GeoDataFrame, column: str = 'percent_value', title: str = None, **style_options) -> ChoroplethMap:
    """
    Creates a :class:`.ChoroplethMap`. See :class:`.ChoroplethMap` for the
    parameters.
    """
    return ChoroplethMap(data=data, column=column, title=title, **style_options)


def compose(maps: List[ChoroplethMap], ncols: int = None, nrows: int = None, figsize: Tuple[float, float] = None, share_scale: bool = True, suptitle: str = None) -> Figure:
    """
    Draws several maps side by side on one figure. By default the maps are laid out
    in a single row.

    Parameters
    ==========
    maps : :obj:`list` of :class:`.ChoroplethMap`
        The maps to draw, in reading order.
    ncols : :obj:`int` = None
        The number of columns of the grid.
    nrows : :obj:`int` = None
        The number of rows of the grid.
    figsize : :obj:`tuple` of :obj:`float` = None
        The size of the figure in inches. Defaults to 6 by 4 inches per panel.
    share_scale : :obj:`bool` = True
        If ``True``, every panel uses the same colour scale (the smallest and largest
        value over all maps), so that shades are comparable between panels.
    suptitle : :obj:`str` = None
        A title for the whole figure.
    """
    if len(maps) == 0:
        raise ValueError('There are no maps to compose.')

    n = len(maps)
    if ncols is None and nrows is None:
        nrows, ncols = 1, n
    elif ncols is None:
        ncols = ceil(n/nrows)
    elif nrows is None:
        nrows = ceil(n/ncols)

    if nrows*ncols < n:
        raise ValueError(f'A {nrows}x{ncols} grid cannot hold {n} maps.')

    if figsize is None:
        figsize = (6*ncols, 4*nrows)

    vmin, vmax = None, None
    if share_scale:
        ranges = [m.value_range() for m in maps]
        lows = [low for low, _ in ranges if low is not None]
        highs = [high for _, high in ranges if high is not None]
        if lows:
            vmin, vmax = min(lows), max(highs)

    fig, axes = plt.subplots(nrows=nrows, ncols=ncols, figsize=figsize, squeeze=False)
    axes_list = list(axes.flatten())
    for m, ax in zip(maps, axes_list):
        m.draw(ax=ax, vmin=vmin, vmax=vmax)

    for ax in axes_list[n:]:
        fig.delaxes(ax)

    if suptitle:
        fig.suptitle(suptitle)

    return fig
