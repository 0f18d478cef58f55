# main.py
# Command line entry point for techcurator
# ========================================

"""
Runs the article pipeline from the command line.

Sources and the reader profile are read from JSON files (the shape external
collectors and profile stores hand over), the resulting ``PipelineResult``
is printed as JSON. ``--diagnose`` probes every stage instead.
"""

import argparse
import asyncio
import json
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from config import PIPELINE_CONFIG, validate_config
from config.version import PROJECT_VERSION
from src.ai import ModelClient
from src.contracts import PipelineOptions, RawContentItem, UserProfile
from src.pipeline import ArticlePipeline
from src.utils import get_metrics_reporter, setup_logging


class TechCuratorSystem:
    """Wires configuration, logging, the model client and the pipeline."""

    def __init__(self, client: Optional[ModelClient] = None):
        self.system_id = str(uuid.uuid4())[:8]
        self.client = client
        self.pipeline: Optional[ArticlePipeline] = None
        self.logger = None
        self.system_logger = None
        self.is_initialized = False

    def initialize(self) -> bool:
        """Validate configuration and build the pipeline; ``False`` on failure."""

        start = time.perf_counter()
        self.logger = setup_logging()
        self.system_logger = self.logger.create_module_logger("system")
        self.system_logger.info(
            {"event": "system.initialize.start", "details": {"system_id": self.system_id}}
        )
        try:
            validate_config()
            self.client = self.client or ModelClient(metrics=get_metrics_reporter())
            self.pipeline = ArticlePipeline(self.client)
        except Exception as e:
            self.system_logger.error(
                {"event": "system.initialize.failed", "details": {"error": str(e)}}
            )
            return False

        self.is_initialized = True
        self.logger.log_system_startup(
            version=PROJECT_VERSION,
            config_summary={
                "quality_threshold": PIPELINE_CONFIG["quality_threshold"],
                "interest_threshold": PIPELINE_CONFIG["interest_threshold"],
                "max_sources_per_article": PIPELINE_CONFIG["max_sources_per_article"],
            },
        )
        self.system_logger.info(
            {
                "event": "system.initialize.completed",
                "latency": time.perf_counter() - start,
                "details": {"system_id": self.system_id},
            }
        )
        return True

    async def run(
        self,
        sources: Sequence[RawContentItem],
        profile: UserProfile,
        options: Optional[PipelineOptions] = None,
    ) -> Dict[str, Any]:
        if not self.is_initialized or self.pipeline is None:
            raise RuntimeError("System not initialized. Call initialize() first.")
        result = await self.pipeline.generate_article(sources, profile, options)
        self.logger.log_performance_metrics(
            {
                "execution_time_ms": result.metadata.execution_time_ms,
                "sources_processed": result.metadata.sources_processed,
                "sources_used": result.metadata.sources_used,
                **self.client.usage_stats(),
            },
            "PIPELINE RUN",
        )
        return result.model_dump(mode="json")

    async def diagnose(self) -> Dict[str, Any]:
        if not self.is_initialized or self.pipeline is None:
            raise RuntimeError("System not initialized. Call initialize() first.")
        report = await self.pipeline.diagnose()
        return report.model_dump(mode="json")


def load_sources(path: Path) -> List[RawContentItem]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("sources", [])
    return [RawContentItem.model_validate(entry) for entry in payload]


def load_profile(path: Path) -> UserProfile:
    return UserProfile.model_validate(json.loads(path.read_text(encoding="utf-8")))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="techcurator article pipeline")
    parser.add_argument("--sources", type=Path, help="JSON file with raw content items")
    parser.add_argument("--profile", type=Path, help="JSON file with the reader profile")
    parser.add_argument(
        "--target-length", choices=["short", "medium", "long"], default="medium"
    )
    parser.add_argument(
        "--style",
        choices=["tutorial", "news", "analysis", "opinion", "curation"],
        default="curation",
    )
    parser.add_argument("--language", default="en")
    parser.add_argument(
        "--diagnose", action="store_true", help="Probe every stage and print a health report"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.diagnose and (args.sources is None or args.profile is None):
        parser.error("--sources and --profile are required unless --diagnose is given")

    system = TechCuratorSystem()
    if not system.initialize():
        print("Initialization failed; see the log for details", file=sys.stderr)
        return 1

    try:
        if args.diagnose:
            output = asyncio.run(system.diagnose())
        else:
            options = PipelineOptions(
                target_length=args.target_length, style=args.style, language=args.language
            )
            output = asyncio.run(
                system.run(load_sources(args.sources), load_profile(args.profile), options)
            )
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"Could not read input: {e}", file=sys.stderr)
        return 1

    print(json.dumps(output, ensure_ascii=False, indent=2))
    if args.diagnose:
        return 0 if output["status"] != "unhealthy" else 2
    return 0 if output["success"] else 2


if __name__ == "__main__":
    sys.exit(main())
