#!/usr/bin/env python3
"""Startup script for the Dataset Validation Orchestrator"""
import sys
import asyncio
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def run_server(host='0.0.0.0', port=8000, reload=False):
    """Run the FastAPI server"""
    import uvicorn

    logger.info(f"Starting server on {host}:{port}")
    uvicorn.run(
        "web.backend.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )


async def _print_typed(text: str, delay: float):
    from orchestrator.reveal import TypedReveal

    def write(piece: str):
        sys.stdout.write(piece)
        sys.stdout.flush()

    await TypedReveal(text, write, delay=delay).start()
    sys.stdout.write("\n")


async def _emit(message, typed: bool, delay: float):
    prefix = f"[{message.role}] "
    if typed:
        sys.stdout.write(prefix)
        await _print_typed(message.content, delay)
    else:
        print(prefix + message.content)
    for suggestion in message.suggestions:
        print(f"    -> {suggestion}")


async def run_analysis(args) -> int:
    """Drive one conversation from the command line"""
    from analysis.csv_codec import parse_bytes
    from analysis.errors import OrchestratorError
    from analysis.session_bridge import JsonFileSessionStore, SessionBridge
    from orchestrator.controller import ConversationLoop
    from orchestrator.policies import PolicyManager

    loop = ConversationLoop(policy=PolicyManager.from_env())
    bridge = SessionBridge(JsonFileSessionStore(args.session)) if args.session else None
    seen = 0

    async def flush():
        nonlocal seen
        messages = loop.messages
        for message in messages[seen:]:
            await _emit(message, args.typed, args.delay)
        seen = len(messages)

    try:
        if args.file:
            path = Path(args.file)
            loop.ingest(parse_bytes(path.read_bytes()), source_name=path.name)
        elif bridge is not None:
            snapshot = loop.restore(bridge)
            if snapshot.is_empty:
                logger.error(f"No dataset found in session file {args.session}")
                return 1
        else:
            logger.error("Provide --file or --session")
            return 1

        goal_text = args.goal or loop.pending_goal_text
        if not goal_text:
            await flush()
            logger.error("No goal given; pass --goal")
            return 1

        await loop.submit_goal(goal_text)
        for question in args.question or []:
            await loop.ask(question)
    except OrchestratorError as e:
        await flush()
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Could not read {args.file}: {e}")
        return 1

    await flush()
    if bridge is not None and args.file:
        bridge.save(loop.dataset, goal_text, file_name=Path(args.file).name)
        logger.info(f"Session saved to {args.session}")
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Dataset Validation Orchestrator")
    subparsers = parser.add_subparsers(dest='command')

    serve = subparsers.add_parser('serve', help='Run the web backend')
    serve.add_argument('--host', default='0.0.0.0', help='Host to bind to')
    serve.add_argument('--port', type=int, default=8000, help='Port to bind to')
    serve.add_argument('--reload', action='store_true', help='Enable auto-reload for development')

    analyze = subparsers.add_parser('analyze', help='Validate a CSV from the command line')
    analyze.add_argument('--file', help='CSV file to analyze')
    analyze.add_argument('--goal', help='Analysis goal in plain language')
    analyze.add_argument('--question', action='append', help='Follow-up question (repeatable)')
    analyze.add_argument('--session', help='JSON file used to restore and save the session')
    analyze.add_argument('--typed', action='store_true', help='Reveal agent messages word by word')
    analyze.add_argument('--delay', type=float, default=0.03, help='Seconds between revealed words')

    return parser.parse_args(argv)


def main():
    """Main entry point"""
    load_dotenv()
    args = parse_args()

    if args.command == 'analyze':
        sys.exit(asyncio.run(run_analysis(args)))

    host = getattr(args, 'host', '0.0.0.0')
    port = getattr(args, 'port', 8000)

    logger.info("="*60)
    logger.info("Dataset Validation Orchestrator Starting Up")
    logger.info("="*60)
    logger.info(f"API Documentation: http://localhost:{port}/docs")
    logger.info("="*60)

    run_server(host, port, getattr(args, 'reload', False))


if __name__ == "__main__":
    main()
