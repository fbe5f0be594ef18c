from typing import Dict, List, Tuple, Iterable
from httpx import AsyncClient, Timeout, Response, ConnectTimeout, ConnectError, ReadTimeout, PoolTimeout
from asyncio import new_event_loop, set_event_loop, run_coroutine_threadsafe, sleep, gather
from threading import Thread
from os import environ

from censusmaps.constants import CENSUS_API_ROOT, BOUNDARY_ROOT


class CensusAPIError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        if status_code:
            super().__init__(f'The Census API had an error (status code {status_code}) and returned the following message:\n\n{message}')
        else:
            super().__init__(message)
        self.status_code = status_code
        self.message = message


class BoundaryDownloadError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        if status_code:
            super().__init__(f'The boundary file server had an error (status code {status_code}) and returned the following message:\n\n{message}')
        else:
            super().__init__(message)

        self.status_code = status_code
        self.message = message


class AsyncLoopHandler(Thread):
    """
    Class to handle asynchronous requests. Useful especially in the case where a user
    is writing code inside an IPython environment.

    Adapted from https://stackoverflow.com/a/66055205/17834461
    """
    def __init__(self):
        super().__init__(daemon=True)
        self.loop = new_event_loop()

    def run(self):
        set_event_loop(self.loop)
        self.loop.run_forever()
        self.loop.close()

    def stop(self):
        """
        Stops the event loop and waits for the thread to finish.
        """
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.join()


class CensusClient(AsyncClient):
    """
    An object that interfaces with the Census Data API. Extends the
    :class:`httpx.AsyncClient` class to allow for asynchronous requests.

    Parameters
    ==========
    url_extension : :obj:`str`
        A URL extension to append to ``https://api.census.gov/data/`` for accessing
        data related to a specific dataset, for example ``2013/acs/acs1/profile``.
    api_key : :obj:`str` = None
        A Census API key. Can be obtained
        `here <https://api.census.gov/data/key_signup.html>`_. If ``api_key`` is
        ``None``, the ``CENSUS_API_KEY`` environment variable is used when it is set.
        Not necessary unless you are making a large number of calls.
    retry_limit : :obj:`int` = 2
        The number of attempts made for each request. ``None`` retries forever.
    **kwargs
        Passed on to :class:`httpx.AsyncClient` (for example ``transport``).
    """
    def __init__(self, url_extension: str, api_key: str = None, **kwargs):
        self.retry_limit = kwargs.pop('retry_limit', 2)
        timeout = kwargs.pop('timeout', Timeout(30.0, connect=30.0))
        super().__init__(timeout=timeout, **kwargs)

        self.root = CENSUS_API_ROOT + url_extension
        self.api_key = api_key if api_key is not None else environ.get('CENSUS_API_KEY')
        self.chunk_size = 50

        self._loop_handler = AsyncLoopHandler()
        self._loop_handler.start()

    def get_sync(self, url: str = '', params: Dict[str, str] = None) -> Response:
        """
        Make a single request to the Census API synchronously.

        Parameters
        ==========
        url : :obj:`str` = ''
            The relative URL to request.
        params : :obj:`dict` of :obj:`str`: :obj:`str`
            Query parameters to supply to the Census API.
        """
        future = run_coroutine_threadsafe(self.get(url=url, params=params), self._loop_handler.loop)
        return future.result()

    def close_sync(self) -> None:
        """
        Closes the underlying connections and stops the background event loop. The
        client cannot be used afterwards.
        """
        if not self._loop_handler.is_alive():
            return
        run_coroutine_threadsafe(self.aclose(), self._loop_handler.loop).result()
        self._loop_handler.stop()

    def get_many_sync(self, url_params_list: Iterable[Tuple[str, Dict[str, str]]] = ()) -> List[Response]:
        """
        Make a more than one request to the Census API synchronously. Note that while
        the requests are still sent asynchronously, the function call itself is
        synchronous.

        Parameters
        ==========
        url_params_list : array-like of :obj:`tuple` of :obj:`str` and :obj:`dict` of :obj:`str`: :obj:`str`
            An array-like of tuples, where each tuple consists of a URL to request and a
            set of query parameters to supply to the Census API.
        """
        future = run_coroutine_threadsafe(self.get_many(url_params_list=url_params_list), self._loop_handler.loop)
        return future.result()

    async def get(self, url: str = '', params: Dict[str, str] = None) -> Response:
        """
        Make a single request to the Census API asynchronously. Only 200 and 204
        responses are returned; anything else raises a :class:`.CensusAPIError`.

        Parameters
        ==========
        url : :obj:`str` = ''
            The relative URL to request.
        params : :obj:`dict` of :obj:`str`: :obj:`str`
            Query parameters to supply to the Census API.
        """
        params = dict(params or {})
        if self.api_key is not None:
            params.update({'key': self.api_key})
        url = self.root + url

        response = None
        retry_count = 0
        while self.retry_limit is None or retry_count < self.retry_limit:
            retry_count += 1
            try:
                response = await super().get(url=url, params=params)
            except (ConnectTimeout, ConnectError, ReadTimeout, PoolTimeout):
                response = None

            if response is None:
                await sleep(2)
                continue

            if response.status_code == 200 or response.status_code == 204:
                return response

            if response.status_code == 404:
                break

        if response is None:
            raise CensusAPIError(status_code=None, message=f'Could not connect to the Census API at {url}.')
        raise CensusAPIError(status_code=response.status_code, message=response.text)

    async def get_many(self, url_params_list: Iterable[Tuple[str, Dict[str, str]]] = ()) -> List[Response]:
        """
        Make a more than one request to the Census API asynchronously.

        Parameters
        ==========
        url_params_list : array-like of :obj:`tuple` of :obj:`str` and :obj:`dict` of :obj:`str`: :obj:`str`
            An array-like of tuples, where each tuple consists of a URL to request and a set
            of query parameters to supply to the Census API.
        """
        tasks = []
        for url, params in url_params_list:
            tasks.append(self._loop_handler.loop.create_task(self.get(url, params=params)))

        chunks = [tasks[i:i + self.chunk_size] for i in range(0, len(tasks), self.chunk_size)]
        responses = []
        for chunk in chunks:
            chunk_responses = await gather(*chunk)
            responses.extend(chunk_responses)

        return responses


class BoundaryClient(AsyncClient):
    """
    An object that downloads cartographic boundary files from the Census Bureau's
    TIGER/Line file server. Extends the :class:`httpx.AsyncClient` class.

    Parameters
    ==========
    retry_limit : :obj:`int` = 2
        The number of attempts made for each download. ``None`` retries forever.
    **kwargs
        Passed on to :class:`httpx.AsyncClient` (for example ``transport``).
    """
    def __init__(self, **kwargs):
        self.retry_limit = kwargs.pop('retry_limit', 2)
        timeout = kwargs.pop('timeout', Timeout(120.0, connect=30.0))
        super().__init__(base_url=BOUNDARY_ROOT, timeout=timeout, follow_redirects=True, **kwargs)

        self._loop_handler = AsyncLoopHandler()
        self._loop_handler.start()

    def get_sync(self, url: str = '') -> Response:
        """
        Download a single file synchronously.

        Parameters
        ==========
        url : :obj:`str` = ''
            The path of the file, relative to ``https://www2.census.gov/geo/tiger/``.
        """
        future = run_coroutine_threadsafe(self.get(url=url), self._loop_handler.loop)
        return future.result()

    def close_sync(self) -> None:
        """
        Closes the underlying connections and stops the background event loop.
        """
        if not self._loop_handler.is_alive():
            return
        run_coroutine_threadsafe(self.aclose(), self._loop_handler.loop).result()
        self._loop_handler.stop()

    async def get(self, url: str = '') -> Response:
        """
        Download a single file asynchronously.

        Parameters
        ==========
        url : :obj:`str` = ''
            The path of the file, relative to ``https://www2.census.gov/geo/tiger/``.
        """
        response = None
        retry_count = 0
        while self.retry_limit is None or retry_count < self.retry_limit:
            retry_count += 1
            try:
                response = await super().get(url=url)
            except (ConnectTimeout, ConnectError, ReadTimeout, PoolTimeout):
                response = None

            if response is None:
                await sleep(2)
                continue

            if response.status_code == 200:
                return response

            if response.status_code == 404:
                raise BoundaryDownloadError(404, f"The boundary file '{url}' does not exist.")

        if response is None:
            raise BoundaryDownloadError(status_code=None, message=f"Your download of '{url}' failed because the file server could not be reached.")
        raise BoundaryDownloadError(status_code=response.status_code, message=response.text)
