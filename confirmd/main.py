"""Main script for running one verification batch from the command line."""

import argparse
import asyncio
import logging

from .domain.errors import FatalPipelineError
from .infrastructure.dependencies import ServiceContainer


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Confirmd - crypto news verification pipeline")
    parser.add_argument("--no-run", action="store_true", help="Seed and print stats without fetching feeds")
    parser.add_argument("--deep-verify", type=int, default=0, metavar="N",
                        help="Deep-verify up to N claims after the run")
    return parser.parse_args()


async def main(args: argparse.Namespace) -> int:
    """Seed the store, run one batch and print the status and statistics."""
    print("Confirmd - crypto news verification")
    print("-----------------------------------")

    container = ServiceContainer()
    await container.initialize()
    pipeline = container.get_pipeline()

    try:
        if not args.no_run:
            print("\nRunning pipeline batch...")
            try:
                summary = await pipeline.run()
            except FatalPipelineError as e:
                print(f"\nPipeline run aborted: {e}")
                return 1
            print(f"Articles processed: {summary.articles_processed}")
            print(f"Claims extracted:   {summary.claims_extracted}")
            print(f"Sources failed:     {summary.sources_failed}")
            print(f"Stories touched:    {summary.stories_touched}")

        if args.deep_verify:
            stats = await container.get_deep_verifier().run_deep_verification_batch(args.deep_verify)
            print(f"\nDeep verified {stats.claims_processed} claims (+{stats.evidence_added} evidence)")

        status = pipeline.get_status()
        print("\nStatus:")
        print(f"Running: {status.is_running}")
        print(f"Last run: {status.last_run_at or 'never'}")
        if status.last_error:
            print(f"Last error: {status.last_error}")

        stats = await container.get_storage().get_pipeline_stats()
        print("\nStatistics:")
        for name, value in stats.model_dump().items():
            print(f"{name}: {value}")
        return 0
    finally:
        await container.shutdown()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    raise SystemExit(asyncio.run(main(_parse_args())))
