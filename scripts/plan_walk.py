import asyncio
import sys

from sanpo.core.config import settings
from sanpo.core.logging import configure_logging
from sanpo.pipeline import PipelineOrchestrator, PipelineState


async def plan_walk(text: str) -> int:
    print("🗺️  Planning walk...\n")
    print(f"📝 Request: {text}")
    print(f"  LLM Provider: {settings.LLM_PROVIDER}")
    print(f"  LLM Model: {settings.LLM_MODEL}\n")

    orchestrator = PipelineOrchestrator()
    printed = set()

    def print_new_events(current) -> None:
        for event in current.status_log:
            if (event.run_id, event.sequence) not in printed:
                printed.add((event.run_id, event.sequence))
                print(f"  {event.sequence:>2}. {event.message}")

    print("📋 Status:")
    orchestrator.subscribe(print_new_events)
    run = await orchestrator.run(text)
    if run is None:
        print("❌ Empty request, nothing to do")
        return 1

    if run.places:
        print(f"\n📍 {run.places.departure} → {run.places.destination}")

    if run.route:
        print(
            f"✅ Route: {run.route.duration_seconds / 60:.0f} min, "
            f"{len(run.route.path)} points"
        )

    if run.state == PipelineState.ERROR:
        print(f"\n❌ Failed ({run.error.category}): {run.error.message}")
        return 1

    if run.state == PipelineState.HALTED_TOO_LONG:
        print("\n⚠️  Route too long for a walk, stopped before imagery")
        return 0

    if run.scene_description:
        print(f"\n🌟 {run.scene_description}")
    else:
        print("\n⚠️  No description available for this route")

    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print('Usage: python scripts/plan_walk.py "Tokyo Station to Shibuya Station"')
        sys.exit(2)

    configure_logging("plan_walk", settings.LOG_LEVEL)
    sys.exit(asyncio.run(plan_walk(" ".join(sys.argv[1:]))))
