#!/usr/bin/env python3
"""Standalone scan script - builds and saves a project's knowledge graph, then exits."""

import logging
import os
import sys
from pathlib import Path

# Setup logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def log_progress(phase: str, completed: int, total: int, current_item=None) -> None:
    if phase == "parsing" and total and completed % 100 != 0 and completed != total:
        return
    suffix = f" ({current_item})" if current_item and phase != "parsing" else ""
    logger.info(f"[{phase}] {completed}/{total}{suffix}")


def main() -> int:
    """Scan WORKSPACE_PATH and save the graph under its .repograph directory."""
    try:
        from repograph.config import get_env_config
        from repograph.tools.index_tool import IndexTool

        config = get_env_config()
        workspace_path = Path(config["workspace_path"])

        logger.info(f"Starting scan of: {workspace_path}")
        logger.info(f"Git history: {config['include_git_history']}")

        tool = IndexTool(workspace_path)
        result = tool.scan_codebase(
            include_git_history=config["include_git_history"],
            on_progress=log_progress,
        )

        if not result["success"]:
            logger.error(f"Scan failed: {result['error']}")
            return 1

        logger.info("=" * 80)
        logger.info("Scan Complete!")
        logger.info(f"Root: {result['rootDir']}")
        logger.info(f"Files: {result['fileCount']} ({result['totalLines']} lines)")
        logger.info(f"Languages: {result['languages']}")
        logger.info(f"Nodes: {result['nodeCount']}")
        logger.info(f"Edges: {result['edgeCount']}")
        logger.info(f"Unresolved imports: {result['unresolvedImports']}")
        logger.info(f"Duration: {result['scanDurationMs']}ms")
        logger.info("=" * 80)

        for warning in result["warnings"]:
            logger.warning(warning)
        if result["errorCount"]:
            logger.warning(f"Failed to parse {result['errorCount']} files:")
            for error in result["errors"]:
                logger.warning(f"  - {error['file']}: {error['error']}")

        return 0

    except Exception as e:
        logger.error(f"Fatal error during scan: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
