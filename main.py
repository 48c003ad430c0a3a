import argparse
import asyncio
import logging
import random

from wikihall.config import LOG_DEBUG
from wikihall.engine import NavigationEngine
from wikihall.source import WikipediaContentSource


def describe_hallway(engine: NavigationEngine) -> None:
    shown = sum(1 for image in engine.wall_images if image is not None)
    print(f"\n Hallway: '{engine.current_title}'")
    print(f"   Walls: {shown}/{engine.wall_count} images")

    for i, target in enumerate(engine.door_targets):
        preview = "preview ready" if engine.door_previews[i] is not None else "no preview yet"
        print(f"   Door {i}: {target.title} ({len(target.image_urls)} images, {preview})")

    if engine.backtrack_available:
        print(f"   Back: {engine.history.peek().title}")


async def play_hallway(start_title: str = None, auto_steps: int = 0, seed: int = None) -> list[str]:

    rng = random.Random(seed)
    engine = NavigationEngine(WikipediaContentSource(), rng=rng)

    await engine.begin_experience(start_title)
    path = [engine.current_title]

    print(f"\n Wiki Hallway starting at '{engine.current_title}'")
    print("=" * 60)
    describe_hallway(engine)

    if auto_steps:
        for step in range(auto_steps):
            door = rng.randint(0, 1)
            task = engine.choose_door(door)
            if task is None:
                print("\nFAILED: no doors to walk through")
                break
            await task
            path.append(engine.current_title)
            print(f"\n Step {step + 1}: took door {door}")
            describe_hallway(engine)

        await engine.wait_idle()
        return path

    while True:
        command = (await asyncio.to_thread(input, "\n[0/1] door, [b]ack, [r]eset, [q]uit > ")).strip().lower()

        if command in ("q", "quit"):
            break

        if command in ("0", "1"):
            task = engine.choose_door(int(command))
            if task is None:
                print("   Doors are not ready yet")
                continue
            await task
            path.append(engine.current_title)
        elif command in ("b", "back"):
            task = engine.backtrack()
            if task is None:
                print("   Nowhere to go back to")
                continue
            await task
            path.append(engine.current_title)
        elif command in ("r", "reset"):
            await engine.begin_experience(start_title)
            path = [engine.current_title]
        else:
            continue

        describe_hallway(engine)

    engine.cancel_all()
    return path


def main():
    parser = argparse.ArgumentParser(description="Walk a hallway of Wikipedia articles, two doors at a time.")
    parser.add_argument("--start", default=None, help="Starting article title")
    parser.add_argument("--auto", type=int, default=0, help="Take N random doors and exit")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for door selection")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or LOG_DEBUG) else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    path = asyncio.run(play_hallway(args.start, auto_steps=args.auto, seed=args.seed))

    print(f"\nFinal Stats:")
    print(f"   Hallways visited: {len(path)}")
    print(f"   Path: {' → '.join(path)}")


if __name__ == "__main__":
    main()
