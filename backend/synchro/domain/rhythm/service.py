"""Rhythm analysis and mirror matching."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from synchro.domain.activity.service import ActivityService
from synchro.domain.common import clock as clock_mod
from synchro.domain.common.clock import Clock
from synchro.obs import metrics as obs_metrics
from synchro.settings import settings

from . import analysis
from .models import MIN_OBSERVATIONS, MIRROR_MATCH_THRESHOLD, MirrorMatch, UserRhythm
from .repo import RhythmRepository

logger = logging.getLogger(__name__)

CompatibilityScorer = Callable[[UserRhythm, UserRhythm], Awaitable[float]]


class RhythmDetector:
	"""Builds rhythm profiles and finds users living on a similar schedule.

	The pairwise compatibility score is pluggable; by default it is computed
	by the store's `calculate_rhythm_compatibility` function.
	"""

	def __init__(
		self,
		activities: ActivityService,
		repository: RhythmRepository | None = None,
		*,
		clock: Clock = clock_mod.utcnow,
		scorer: CompatibilityScorer | None = None,
		window_days: int | None = None,
	) -> None:
		self._activities = activities
		self._repo = repository or RhythmRepository()
		self._clock = clock
		self._scorer = scorer or self._store_compatibility
		self._window_days = int(window_days if window_days is not None else settings.rhythm_window_days)

	async def _store_compatibility(self, user: UserRhythm, other: UserRhythm) -> float:
		return await self._repo.compatibility(user.user_id, other.user_id)

	async def analyze_user_rhythm(self, user_id: str) -> Optional[UserRhythm]:
		try:
			observations = await self._activities.list_recent(user_id, self._window_days)
			if len(observations) < MIN_OBSERVATIONS:
				obs_metrics.inc_rhythm_analysis("insufficient")
				return None
			rhythm = analysis.build_rhythm(user_id, observations)
			await self._repo.upsert_rhythm(rhythm, self._clock())
		except Exception:
			logger.exception("rhythm analysis failed", extra={"user_id": user_id})
			obs_metrics.inc_rhythm_analysis("error")
			return None
		obs_metrics.inc_rhythm_analysis("ok")
		return rhythm

	async def get_user_rhythm(self, user_id: str) -> Optional[UserRhythm]:
		try:
			return await self._repo.get_rhythm(user_id)
		except Exception:
			logger.warning("rhythm lookup failed", extra={"user_id": user_id}, exc_info=True)
			return None

	async def find_mirror_matches(self, user_id: str) -> List[MirrorMatch]:
		"""Score every other profile against the user's, keeping the strong ones.

		A user without a profile gets one computed and an empty result; the
		caller is expected to ask again.
		"""
		rhythm = await self.get_user_rhythm(user_id)
		if rhythm is None:
			await self.analyze_user_rhythm(user_id)
			return []
		try:
			others = await self._repo.list_others(user_id)
			matches: List[MirrorMatch] = []
			now = self._clock()
			for other in others:
				score = float(await self._scorer(rhythm, other))
				if score < MIRROR_MATCH_THRESHOLD:
					continue
				routines = analysis.shared_routines(rhythm, other)
				matches.append(
					MirrorMatch(
						user_id=other.user_id,
						overlap_score=score,
						shared_routines=routines,
						routine_similarity=analysis.routine_similarity(rhythm, other),
						location_overlap=analysis.location_overlap(rhythm, other),
						time_overlap=analysis.time_overlap(rhythm, other),
						suggested_meetup=analysis.meetup_suggestion(rhythm, other, routines),
					)
				)
				await self._repo.upsert_mirror_match(user_id, other.user_id, score, routines, now)
		except Exception:
			logger.exception("mirror matching failed", extra={"user_id": user_id})
			return []
		matches.sort(key=lambda match: match.overlap_score, reverse=True)
		return matches
