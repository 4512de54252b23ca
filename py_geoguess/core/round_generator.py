"""
Round generation sessions.

A ``RoundGenerator`` produces map positions for one game and writes them to
the round store in a single operation. It works for exactly one generation:
once it reaches a terminal state it cannot be started again.

Cancellation is cooperative. ``cancel()`` only sets a token, which is checked
before and after every await on an external service, so an in-flight lookup
always completes before cancellation takes effect. Rounds produced before
cancellation are discarded and nothing is written.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

import numpy as np
import structlog

from ..config import settings
from ..utils.random import get_rng
from .errors import (
    GenerationCancelled,
    InsufficientPoints,
    MissingShapeData,
    SessionStateError,
    StoreWriteFailure,
)
from .geodesy import random_global_point
from .panorama import PanoramaLocator
from .route_source import RoutePointSource
from .sampler import RegionPointSampler
from .types import Coordinate, Region, Round, ShapeOptions

logger = structlog.get_logger()


class RoundPublisher(Protocol):
    """Persistent store for finished round sets."""

    async def write_rounds(self, path: str, rounds: Mapping[int, Round]) -> None:
        ...


class GenerationState(str, Enum):
    """Lifecycle of a generation session."""

    IDLE = "idle"
    GENERATING = "generating"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {GenerationState.CANCELLED, GenerationState.COMPLETED, GenerationState.FAILED}
)

_TRANSITIONS = {
    GenerationState.IDLE: frozenset({GenerationState.GENERATING}),
    GenerationState.GENERATING: TERMINAL_STATES,
}


class CancellationToken:
    """Flag polled at every suspension point of a session."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise GenerationCancelled()


PositionSource = Callable[[CancellationToken], Awaitable[Optional[Coordinate]]]


class RoundGenerator:
    """
    Generates the rounds of one game at ``room_path``.

    Any rounds previously stored at ``room_path`` are replaced when the
    generation completes.
    """

    def __init__(
        self,
        room_path: str,
        locator: PanoramaLocator,
        store: RoundPublisher,
        *,
        get_shape_from_cache: Callable[[str], Optional[Region]],
        put_shape_in_cache: Callable[[str, Region], None],
        get_shape_opts: Callable[[str], Optional[ShapeOptions]],
        fetch_shape: Callable[[str], Awaitable[Optional[Region]]],
        fetch_route: Callable[[str], Awaitable[Sequence[Coordinate]]],
        round_count: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.room_path = room_path
        if round_count is None:
            round_count = settings.default_round_count
        if round_count < 1:
            raise ValueError(f"round_count must be at least 1, got {round_count}")
        self.round_count = round_count

        self._locator = locator
        self._store = store
        self._get_shape_from_cache = get_shape_from_cache
        self._put_shape_in_cache = put_shape_in_cache
        self._get_shape_opts = get_shape_opts
        self._fetch_shape = fetch_shape
        self._fetch_route = fetch_route
        self._rng = rng if rng is not None else get_rng()

        self._state = GenerationState.IDLE
        self._token = CancellationToken()
        self._work: Optional[asyncio.Task] = None
        self._rounds: Dict[int, Round] = {}
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def rounds(self) -> Dict[int, Round]:
        """Rounds of a completed generation, empty otherwise."""
        return dict(self._rounds)

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def _transition(self, new_state: GenerationState) -> bool:
        """Move to ``new_state`` if the lifecycle allows it."""
        if new_state not in _TRANSITIONS.get(self._state, frozenset()):
            return False
        logger.info(
            "Generation state changed",
            room_path=self.room_path,
            old_state=self._state.value,
            new_state=new_state.value,
        )
        self._state = new_state
        return True

    def start_generation(self, shape_names: Sequence[str] = (), route_url: Optional[str] = None) -> None:
        """
        Spawn the generation task on the running event loop.

        Route points are used when ``route_url`` is given, shapes otherwise.
        With no usable shape the whole globe is sampled.

        Raises:
            SessionStateError: If this session was already started
        """
        loop = asyncio.get_running_loop()
        if not self._transition(GenerationState.GENERATING):
            raise SessionStateError(
                f"Generation for {self.room_path} cannot start from state {self._state.value}"
            )

        logger.info(
            "Starting game generation",
            room_path=self.room_path,
            shape_names=list(shape_names),
            route_url=route_url,
            round_count=self.round_count,
        )
        if route_url:
            work = self._fetch_route_and_generate(route_url)
        else:
            work = self._fetch_shapes_and_generate(list(shape_names))
        self._work = loop.create_task(self._run(work))

    def cancel(self) -> None:
        """Request cancellation; ignored once the session has finished."""
        if self._state.is_terminal:
            return
        logger.info("Game generation cancelled", room_path=self.room_path)
        self._token.cancel()

    async def wait_to_finish(self) -> Dict[int, Round]:
        """
        Wait for the session to reach a terminal state.

        Returns:
            The generated rounds by index

        Raises:
            GenerationCancelled: If the session was cancelled
            GenerationFailed: If generation failed
        """
        if self._work is None:
            raise SessionStateError(f"Generation for {self.room_path} was never started")
        await self._work
        return self.rounds

    async def _run(self, work: Awaitable[Dict[int, Round]]) -> None:
        try:
            rounds = await work
        except GenerationCancelled as e:
            self._error = e
            self._transition(GenerationState.CANCELLED)
            raise
        except asyncio.CancelledError:
            self._transition(GenerationState.CANCELLED)
            raise
        except Exception as e:
            logger.error("Game generation failed", room_path=self.room_path, error=str(e))
            self._error = e
            self._transition(GenerationState.FAILED)
            raise
        self._rounds = rounds
        self._transition(GenerationState.COMPLETED)

    async def _fetch_shapes_and_generate(self, shape_names: List[str]) -> Dict[int, Round]:
        token = self._token
        token.raise_if_cancelled()

        regions = await self._fetch_shapes(shape_names, token)
        logger.info("Generating from shapes", shapes=[region.name() for region in regions])

        sampler = RegionPointSampler(regions, self._rng) if regions else None

        async def next_position(token: CancellationToken) -> Optional[Coordinate]:
            return await self._generate_valid_position(sampler, token)

        token.raise_if_cancelled()
        return await self._generate_rounds(next_position, token)

    async def _fetch_route_and_generate(self, route_url: str) -> Dict[int, Round]:
        token = self._token
        token.raise_if_cancelled()

        points = await self._fetch_route(route_url)
        token.raise_if_cancelled()
        logger.info("Generating from route", route_url=route_url, points=len(points))

        source = RoutePointSource(points, self._rng)

        async def next_position(token: CancellationToken) -> Optional[Coordinate]:
            return await self._generate_valid_position_from_route(source, token)

        return await self._generate_rounds(next_position, token)

    async def _fetch_shapes(self, shape_names: List[str], token: CancellationToken) -> List[Region]:
        token.raise_if_cancelled()
        regions = []
        for shape_name in shape_names:
            token.raise_if_cancelled()
            region = self._get_shape_from_cache(shape_name)
            if region is None:
                shape_opts = self._get_shape_opts(shape_name)
                if shape_opts is None:
                    # Other clients may still be publishing their shape list
                    logger.warning("Skipping unknown shape", shape_name=shape_name)
                    continue
                region = await self._fetch_shape(shape_opts.relative_path)
                token.raise_if_cancelled()
                if region is None:
                    raise MissingShapeData(shape_name)
                self._put_shape_in_cache(shape_name, region)
            regions.append(region)
        token.raise_if_cancelled()
        return regions

    async def _generate_rounds(self, next_position: PositionSource, token: CancellationToken) -> Dict[int, Round]:
        token.raise_if_cancelled()

        rounds: Dict[int, Round] = {}
        for index in range(self.round_count):
            token.raise_if_cancelled()
            position = await next_position(token)
            if position is None:
                raise InsufficientPoints()
            rounds[index] = Round(index=index, map_position=position)
            logger.debug("Round generated", room_path=self.room_path, index=index)

        token.raise_if_cancelled()
        try:
            await self._store.write_rounds(self.room_path, rounds)
        except StoreWriteFailure:
            raise
        except Exception as e:
            logger.error("Failed to write rounds", room_path=self.room_path, error=str(e))
            raise StoreWriteFailure() from e
        return rounds

    async def _generate_valid_position(
        self, sampler: Optional[RegionPointSampler], token: CancellationToken
    ) -> Optional[Coordinate]:
        for attempt in range(settings.max_region_attempts):
            token.raise_if_cancelled()
            if sampler is not None:
                point = sampler.sample_point()
            else:
                point = random_global_point(self._rng)
            token.raise_if_cancelled()

            position = await self._locator.find_nearest(point)
            token.raise_if_cancelled()
            if position is not None:
                return position
            logger.debug("No panorama near sample", attempt=attempt, lat=point.lat, lng=point.lng)
        return None

    async def _generate_valid_position_from_route(
        self, source: RoutePointSource, token: CancellationToken
    ) -> Optional[Coordinate]:
        while True:
            token.raise_if_cancelled()
            point = source.next_point()
            if point is None:
                return None

            position = await self._locator.find_nearest(point, settings.route_search_radius_m)
            token.raise_if_cancelled()
            if position is not None:
                return position
            logger.debug("No panorama near route point", lat=point.lat, lng=point.lng)
