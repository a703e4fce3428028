"""
CLI entry point for invoking a single tool.

Usage:
    python -m pv_agent.tools --list
    python -m pv_agent.tools get_statistics
    python -m pv_agent.tools classify_event_from_input --params '{"drugName": "Aspirin", "adverseEventDescription": "Severe headache"}'
    python -m pv_agent.tools classify_from_pdf --params-file request.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from pv_agent.core.config import DB_PATH, LOG_LEVEL
from pv_agent.core.db import get_connection, init_db
from pv_agent.core.logging_utils import configure_logging
from pv_agent.core.seed import seed_sample_data

logger = logging.getLogger(__name__)


def build_server(db_path: Path = DB_PATH):
    """Wire extractor, classifier and agent around one Ollama client."""
    from pv_agent.agent.workflow import PharmacovigilanceAgent
    from pv_agent.pipeline.classification.classifier import AdverseEventClassifier
    from pv_agent.pipeline.extraction.extractor import AdverseEventExtractor
    from pv_agent.pipeline.llm_client import OllamaLLMClient
    from pv_agent.tools.server import ToolServer

    llm_client = OllamaLLMClient()
    classifier = AdverseEventClassifier(llm_client, db_path=db_path)
    agent = PharmacovigilanceAgent(classifier, db_path=db_path)
    return ToolServer(AdverseEventExtractor(llm_client), classifier, agent=agent, db_path=db_path)


def main() -> int:
    parser = argparse.ArgumentParser(description="Invoke a pharmacovigilance tool")
    parser.add_argument("tool_name", nargs="?", help="Tool to invoke")
    parser.add_argument("--params", default=None, help="Tool parameters as a JSON object")
    parser.add_argument("--params-file", type=Path, default=None, help="Read tool parameters from a JSON file")
    parser.add_argument("--list", action="store_true", help="List available tools and exit")
    parser.add_argument("--db", type=Path, default=DB_PATH, help="SQLite database path")
    parser.add_argument("--init-db", action="store_true", help="Create tables before running")
    parser.add_argument("--seed", action="store_true", help="Insert sample data if the store is empty")
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args()

    configure_logging(args.log_level)

    if args.init_db or args.seed:
        conn = get_connection(args.db)
        try:
            init_db(conn)
            if args.seed:
                seed_sample_data(conn)
        finally:
            conn.close()

    if not args.list and not args.tool_name:
        if args.init_db or args.seed:
            return 0
        parser.error("tool_name is required unless --list, --init-db or --seed is given")

    if args.params and args.params_file:
        parser.error("use either --params or --params-file, not both")

    params = {}
    try:
        if args.params_file:
            params = json.loads(args.params_file.read_text(encoding="utf-8"))
        elif args.params:
            params = json.loads(args.params)
    except (OSError, json.JSONDecodeError) as e:
        parser.error(f"could not read parameters: {e}")
    if not isinstance(params, dict):
        parser.error("parameters must be a JSON object")

    server = build_server(args.db)
    try:
        if args.list:
            print(json.dumps(server.list_tools(), indent=2))
            return 0
        result = server.call(args.tool_name, params)
        print(json.dumps(result, indent=2, default=str))
        return 0 if result.get("success") else 1
    finally:
        # Let workflow runs queued by create_adverse_event finish
        server.agent.shutdown(wait=True)


if __name__ == "__main__":
    sys.exit(main())
