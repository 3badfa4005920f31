"""FastMCP server exposing knowledge graph scans and analyses."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import ConfigCache, get_env_config
from .indexer.file_watcher import CodebaseWatcher, rescan_on_change
from .tools.graph_tool import GraphQueryTool
from .tools.index_tool import IndexTool

env_config = get_env_config()

# Log to stderr and to LOG_FILE
formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

# Console handler
console_handler = logging.StreamHandler()
console_handler.setLevel(env_config["log_level"])
console_handler.setFormatter(formatter)

# File handler (for detailed logs)
file_handler = logging.FileHandler(env_config["log_file"])
file_handler.setLevel(env_config["log_level"])
file_handler.setFormatter(formatter)

# Configure root logger
root_logger = logging.getLogger()
root_logger.setLevel(env_config["log_level"])
root_logger.addHandler(console_handler)
root_logger.addHandler(file_handler)

logger = logging.getLogger(__name__)

# Tools below are registered on this server
mcp = FastMCP("repograph")

# One cache for every root this process touches; cleared after a scan
config_cache = ConfigCache()
file_watcher: Optional[CodebaseWatcher] = None


def _root(root_dir: Optional[str]) -> Path:
    return Path(root_dir or env_config["workspace_path"])


def _graph_tool(root_dir: Optional[str]) -> GraphQueryTool:
    return GraphQueryTool(_root(root_dir), config_cache)


@mcp.tool()
async def scan_codebase(root_dir: Optional[str] = None, include_git_history: bool = True) -> dict:
    """Scan a codebase into a knowledge graph and save it under <root>/.repograph.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
        include_git_history: Attach churn and contributors from git history

    Returns:
        Dictionary with file, node and edge counts plus per-file parse errors
    """
    config_cache.clear()
    tool = IndexTool(_root(root_dir), config_cache)
    return await asyncio.to_thread(tool.scan_codebase, include_git_history)


@mcp.tool()
def graph_status(root_dir: Optional[str] = None) -> dict:
    """Report whether a graph exists, whether it is stale, and its summary statistics.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
    """
    return _graph_tool(root_dir).graph_status()


@mcp.tool()
def complexity_report(root_dir: Optional[str] = None, hotspot_limit: Optional[int] = None) -> dict:
    """Average, max and total cyclomatic complexity with category distribution and hotspots.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
        hotspot_limit: Number of hotspots to include (default from config, 20)
    """
    return _graph_tool(root_dir).complexity_report(hotspot_limit)


@mcp.tool()
def complexity_hotspots(
    root_dir: Optional[str] = None,
    limit: Optional[int] = None,
    threshold: Optional[int] = None,
    include_files: bool = False,
) -> dict:
    """Most complex functions (optionally files), highest first.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
        limit: Maximum number of results (default from config, 10)
        threshold: Minimum complexity (default: the medium threshold)
        include_files: Also rank files by aggregate complexity
    """
    return _graph_tool(root_dir).complexity_hotspots(limit, threshold, include_files)


@mcp.tool()
def churn_hotspots(root_dir: Optional[str] = None, limit: Optional[int] = None) -> dict:
    """Files that are both complex and frequently changed, with priority labels.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
        limit: Maximum number of results (default from config, 10)
    """
    return _graph_tool(root_dir).churn_hotspots(limit)


@mcp.tool()
def import_cycles(root_dir: Optional[str] = None, max_cycles: Optional[int] = None) -> dict:
    """Circular import chains between files, most severe first.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
        max_cycles: Stop after this many cycles (default from config, 1000)
    """
    return _graph_tool(root_dir).import_cycles(max_cycles)


@mcp.tool()
def directory_coupling(root_dir: Optional[str] = None) -> dict:
    """Complexity totals, file counts and averages per directory.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
    """
    return _graph_tool(root_dir).directory_coupling()


@mcp.tool()
def coupling_score(file_a: str, file_b: str, root_dir: Optional[str] = None) -> dict:
    """Import coupling between two files from 0 (independent) to 1.

    Args:
        file_a: Root-relative path of the first file
        file_b: Root-relative path of the second file
        root_dir: Project root (defaults to the mounted workspace)
    """
    return _graph_tool(root_dir).coupling_score(file_a, file_b)


@mcp.tool()
def refactor_suggestions(root_dir: Optional[str] = None, limit: Optional[int] = None) -> dict:
    """Functions worth refactoring for complexity or length, highest priority first.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
        limit: Maximum number of suggestions
    """
    return _graph_tool(root_dir).refactor_suggestions(limit)


@mcp.tool()
def file_relationships(file_path: str, root_dir: Optional[str] = None) -> dict:
    """What a file imports, which files import it, and the symbols it declares.

    Args:
        file_path: Root-relative path (e.g. "src/server.ts")
        root_dir: Project root (defaults to the mounted workspace)
    """
    return _graph_tool(root_dir).file_relationships(file_path)


@mcp.tool()
def compare_with_snapshot(root_dir: Optional[str] = None) -> dict:
    """Compare current codebase health with the snapshot recorded before the last scan.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
    """
    return _graph_tool(root_dir).compare_with_snapshot()


@mcp.tool()
def delete_graph(root_dir: Optional[str] = None) -> dict:
    """Delete the saved knowledge graph, metadata and health history.

    Args:
        root_dir: Project root (defaults to the mounted workspace)
    """
    return IndexTool(_root(root_dir), config_cache).delete_graph()


def initialize_watcher() -> None:
    """Create the workspace file watcher when enabled."""
    global file_watcher

    if not env_config["enable_watcher"]:
        logger.info("File watcher disabled (set ENABLE_FILE_WATCHER=true to enable)")
        return

    workspace_path = Path(env_config["workspace_path"])
    if not workspace_path.exists():
        logger.warning(
            f"Workspace path does not exist: {workspace_path}. "
            "File watcher will not be started."
        )
        return

    logger.info(
        f"Initializing file watcher for {workspace_path} "
        f"(debounce: {env_config['watcher_debounce']}s)"
    )
    index_tool = IndexTool(workspace_path, config_cache)
    file_watcher = CodebaseWatcher(
        watch_path=str(workspace_path),
        on_change_callback=rescan_on_change(index_tool),
        debounce_seconds=env_config["watcher_debounce"],
        exclude_patterns=config_cache.get(workspace_path).scan.exclude_patterns,
    )


def run_watcher_debounce_in_thread() -> None:
    """Run the file watcher's async debounce processor in a separate thread."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    try:
        if file_watcher is not None and file_watcher.is_running():
            logger.info("Starting file watcher debounce processor in background thread...")
            loop.run_until_complete(file_watcher.start_debounce_processor())
    except Exception as e:
        logger.error(f"File watcher debounce processor error: {e}")
    finally:
        loop.close()


def stop_file_watcher() -> None:
    if file_watcher is not None:
        logger.info("Stopping file watcher observer...")
        file_watcher.stop()


if __name__ == "__main__":
    import atexit
    import threading

    logger.info("Starting repograph MCP Server...")

    initialize_watcher()
    if file_watcher is not None:
        file_watcher.start()
        watcher_thread = threading.Thread(
            target=run_watcher_debounce_in_thread,
            daemon=True,
            name="FileWatcherDebounce",
        )
        watcher_thread.start()
        logger.info("Rescanning the workspace on source changes")

    atexit.register(stop_file_watcher)

    logger.info("Graph tools registered, serving requests")

    try:
        mcp.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise
