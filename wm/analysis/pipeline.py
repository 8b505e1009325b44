"""
Run the per-session parse/sync work, in parallel when asked, and fold the
partial results into one WorkingSet.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Iterable, Optional

from wm.analysis.aggregate import WorkingSet
from wm.analysis.config import PipelineConfig
from wm.analysis.estimate import estimate_all
from wm.analysis.sync import synchronize
from wm.errors import NoUsableInputError
from wm.parsers.nmea import parse_nmea
from wm.parsers.pcapng import parse_capture
from wm.utils.discovery import SessionPair
from wm.utils.log import get_logger

logger = get_logger(__name__)


def process_session(pair: SessionPair, cfg: PipelineConfig) -> WorkingSet:
    """
    Parse one capture/GPS pair into a private partial WorkingSet.

    Raises whatever the parsers raise; the caller decides what a failed
    session means for the run.
    """
    fixes = parse_nmea(pair.nmea)
    observations = synchronize(parse_capture(pair.capture), fixes, cfg.sync, pair.session_id)
    positioned = sum(1 for o in observations if o.position is not None)
    logger.info(
        "Session %s: %d observations (%d positioned) from %s with %d fixes",
        pair.session_id, len(observations), positioned, pair.capture.name, len(fixes),
    )
    return WorkingSet().fold(observations)


class MappingPipeline:
    """
    Sessions in, frozen and estimated WorkingSet out.
    """
    def __init__(self, cfg: Optional[PipelineConfig] = None) -> None:
        self.cfg = cfg or PipelineConfig()

    def run(self, sessions: Iterable[SessionPair]) -> WorkingSet:
        sessions = list(sessions)
        logger.info("Processing %d sessions with %d workers", len(sessions), max(1, self.cfg.workers))
        ws = self.aggregate(sessions)
        ws.freeze()
        logger.info("Aggregated %d observations of %d access points", ws.observation_count, len(ws))
        estimate_all(ws, self.cfg.estimator)
        return ws

    def aggregate(self, sessions: list[SessionPair]) -> WorkingSet:
        """
        Fold every session that parses into one (unfrozen) WorkingSet.

        Raises
        ------
        NoUsableInputError
            If no session contributed a single observation.
        """
        ws = WorkingSet()
        contributed = 0

        def _fold(pair: SessionPair, part: WorkingSet) -> None:
            nonlocal contributed
            if len(part):
                contributed += 1
                ws.merge(part)
            else:
                logger.warning("Session %s (%s) produced no observations", pair.session_id, pair.capture)

        if self.cfg.workers > 1 and len(sessions) > 1:
            with ProcessPoolExecutor(max_workers=self.cfg.workers) as pool:
                futures = {pool.submit(process_session, pair, self.cfg): pair for pair in sessions}
                for fut in as_completed(futures):
                    pair = futures[fut]
                    try:
                        part = fut.result()
                    except Exception as e:
                        logger.error("Session %s (%s) failed: %s", pair.session_id, pair.capture, e)
                        continue
                    _fold(pair, part)
        else:
            for pair in sessions:
                try:
                    part = process_session(pair, self.cfg)
                except Exception as e:
                    logger.error("Session %s (%s) failed: %s", pair.session_id, pair.capture, e)
                    continue
                _fold(pair, part)

        if not contributed:
            raise NoUsableInputError(f"none of {len(sessions)} sessions produced observations")
        return ws
