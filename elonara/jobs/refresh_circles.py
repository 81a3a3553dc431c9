"""Recompute cached circles after bulk link changes."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from elonara.domain.circles.graph import CircleGraph
from elonara.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_JOB_NAME = "circles-cache-refresh"


class CircleRefreshJob:
	"""Refreshes the cached context of each given user."""

	def __init__(self, graph: CircleGraph) -> None:
		self.graph = graph

	async def run_once(self, user_ids: Iterable[int]) -> int:
		started = datetime.now(timezone.utc)
		targets = [uid for uid in dict.fromkeys(int(uid) for uid in user_ids) if uid > 0]
		refreshed = 0
		try:
			for user_id in targets:
				await self.graph.refresh_cache(user_id)
				refreshed += 1
		except Exception:
			obs_metrics.record_job_run(_JOB_NAME, result="error")
			logger.exception(
				"circle refresh aborted",
				extra={"refreshed": refreshed, "requested": len(targets)},
			)
			raise
		finally:
			duration = (datetime.now(timezone.utc) - started).total_seconds()
			obs_metrics.observe_job_duration(_JOB_NAME, duration)
		obs_metrics.record_job_run(_JOB_NAME, result="success")
		logger.info("circle refresh complete", extra={"refreshed": refreshed})
		return refreshed
