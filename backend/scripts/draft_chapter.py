#!/usr/bin/env python3
"""
Run one AI authoring action against a running generation backend and write
the result back into a chapter draft file.

Run from backend/:
    python3 scripts/draft_chapter.py --novel-id 42 --draft draft.json generate --prompt "Open in a storm"
    python3 scripts/draft_chapter.py --novel-id 42 --draft draft.json ideas
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# ── ensure backend root is on sys.path so bare imports work ──
BACKEND_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_ROOT))

from core.editor import DraftEditingEngine  # noqa: E402
from core.errors import AuthoringError  # noqa: E402
from core.orchestrator import GenerationOrchestrator  # noqa: E402
from core.providers import RemoteProviderRegistry  # noqa: E402
from core.transport import HttpGenerationTransport  # noqa: E402
from models import ChapterDraft, OperationKind  # noqa: E402
from services.authoring import AuthoringSession  # noqa: E402
from utils.storage import atomic_write_text  # noqa: E402


def load_draft(path: Path, chapter_number: str, title: str) -> ChapterDraft:
    """Load a draft JSON file, or start an empty one when it does not exist yet."""
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            return ChapterDraft.model_validate(json.load(f))
    return ChapterDraft(chapter_number=chapter_number, title=title)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AI-assisted chapter drafting")
    parser.add_argument("action", choices=[kind.value for kind in OperationKind])
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--novel-id", required=True)
    parser.add_argument("--draft", required=True, type=Path, help="chapter draft JSON file")
    parser.add_argument("--chapter-number", default="1")
    parser.add_argument("--title", default="")
    parser.add_argument("--prompt", default="")
    parser.add_argument("--provider")
    parser.add_argument("--model")
    parser.add_argument("--temperature", type=float, default=0.7)
    parser.add_argument("--max-tokens", type=int, default=2000)
    parser.add_argument("--timeout", type=float, default=120.0)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    transport = HttpGenerationTransport(args.base_url, timeout=args.timeout)
    registry = RemoteProviderRegistry(transport)
    await registry.refresh()
    if not registry.is_configured:
        print("No AI provider configured on the backend. Set a provider API key.", file=sys.stderr)
        return 1

    draft = load_draft(args.draft, args.chapter_number, args.title)
    engine = DraftEditingEngine(draft)
    session = AuthoringSession(GenerationOrchestrator(registry, transport), engine, args.novel_id)
    provider_id = args.provider or next(iter(registry.list()))

    try:
        session.select_provider(
            provider_id,
            args.model,
            temperature=args.temperature,
            max_tokens=args.max_tokens,
        )
        outcome = await session.run(OperationKind(args.action), args.prompt)
    except (AuthoringError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    result = outcome.result
    if result.notice:
        print(f"[!] {result.notice.message} ({result.notice.provider_label})", file=sys.stderr)

    if result.kind is OperationKind.IDEAS:
        for idx, idea in enumerate(result.ideas, start=1):
            print(f"{idx}. {idea}\n")
        return 0

    atomic_write_text(
        args.draft,
        json.dumps(engine.draft.model_dump(mode="json"), ensure_ascii=False, indent=2),
    )
    stats = engine.stats()
    print(f"Draft updated with {result.provider_label}: {args.draft}")
    print(
        f"  {stats.words} words | {stats.characters} characters | "
        f"{stats.paragraphs} paragraphs | {stats.reading_time} min read"
    )
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
