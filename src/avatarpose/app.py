"""avatarpose command-line driver.

Builds a character session (built-in demo rig or JSON skeleton/motion
files), loads clips, runs a number of frames and prints the resulting
expression weights and selected bone rotations. It can also export the
demo rig as JSON input files and dump the retargeted clips.
"""

import argparse
import logging
import random
import time
from pathlib import Path

import numpy as np

from avatarpose.animation.clip import clip_to_dict
from avatarpose.constants import (
    CURRENT_FORMAT_VERSION, DEFAULT_RIG_MAP, DEFAULT_SOURCE_CLIP, LEGACY_FORMAT_VERSION, TARGET_FPS,
)
from avatarpose.coordination.session import CharacterSession, SessionConfig
from avatarpose.core.clock import DeltaClock
from avatarpose.core.config_loader import save_json
from avatarpose.core.math_utils import quat_angle
from avatarpose.core.skeleton import Skeleton
from avatarpose.retarget.motion_asset import load_skeleton, motion_asset_to_dict
from avatarpose.retarget.rig_map import RigMap
from avatarpose.scene.builtin_rigs import demo_motion_assets, humanoid_target_skeleton

logger = logging.getLogger(__name__)

TARGET_SKELETON_FILE = "target_skeleton.json"


def _parse_clip(value: str) -> tuple[str, Path]:
    name, sep, path = value.partition("=")
    if not sep or not name or not path:
        raise argparse.ArgumentTypeError(f"expected NAME=PATH, got {value!r}")
    return name, Path(path)


def _parse_vec3(value: str) -> np.ndarray:
    parts = value.split(",")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"expected x,y,z, got {value!r}")
    try:
        return np.array([float(p) for p in parts], dtype=np.float64)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected numbers in {value!r}") from None


def export_demo(directory: Path, skeleton: Skeleton) -> list[Path]:
    """Write ``skeleton`` and the built-in demo motion assets to ``directory``."""
    written = [save_json(directory / TARGET_SKELETON_FILE, skeleton.to_dict())]
    for name, asset in demo_motion_assets().items():
        written.append(save_json(directory / f"{name}.json", motion_asset_to_dict(asset)))
    logger.info("Exported %d demo files to %s", len(written), directory)
    return written


def dump_clips(session: CharacterSession, directory: Path) -> list[Path]:
    written = []
    for name in session.clips.names:
        written.append(save_json(directory / f"{name}.json", clip_to_dict(session.clips.get(name))))
    logger.info("Wrote %d retargeted clips to %s", len(written), directory)
    return written


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="avatarpose", description=__doc__.splitlines()[0])
    p.add_argument("--skeleton", type=Path, help="target skeleton JSON (default: built-in humanoid)")
    p.add_argument("--legacy", action="store_true", help="treat the built-in target as legacy format")
    p.add_argument("--clip", dest="clips", action="append", type=_parse_clip, default=[],
                   metavar="NAME=PATH", help="motion asset JSON to load under NAME (repeatable)")
    p.add_argument("--source-clip", default=DEFAULT_SOURCE_CLIP, help="clip name inside each asset")
    p.add_argument("--rig-map", default=DEFAULT_RIG_MAP, help="rig map file under config/rig_maps")
    p.add_argument("--play", help="clip to play after loading")
    p.add_argument("--loop", action="store_true")
    p.add_argument("--fade", type=float, default=None)
    p.add_argument("--idle-cycle", action="store_true", help="cycle through the idle pool")
    p.add_argument("--frames", type=int, default=120)
    p.add_argument("--dt", type=float, default=1.0 / TARGET_FPS, help="fixed frame delta (seconds)")
    p.add_argument("--realtime", action="store_true", help="use wall-clock frame deltas")
    p.add_argument("--limb-spacing", type=float, default=None)
    p.add_argument("--gaze", type=_parse_vec3, default=None, metavar="X,Y,Z")
    p.add_argument("--head-intensity", type=float, default=None)
    p.add_argument("--emotion", default=None)
    p.add_argument("--talk", action="store_true", help="trigger the talking expression")
    p.add_argument("--surprise", action="store_true", help="trigger the surprise expression")
    p.add_argument("--bones", default="hips,spine,head,rightUpperArm",
                   help="comma-separated bones to print")
    p.add_argument("--export-demo", type=Path, metavar="DIR",
                   help="write the target skeleton and demo motion assets as JSON, then exit")
    p.add_argument("--dump-clips", type=Path, metavar="DIR",
                   help="write each retargeted clip as JSON after loading")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--verbose", "-v", action="store_true")
    return p


def main(argv=None) -> int:
    """Run the headless pose pipeline."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(name)s: %(message)s")

    if args.skeleton is not None:
        try:
            skeleton = load_skeleton(args.skeleton)
        except (OSError, ValueError) as e:
            logger.error("Cannot load skeleton %s: %s", args.skeleton, e)
            return 1
    else:
        skeleton = humanoid_target_skeleton(
            LEGACY_FORMAT_VERSION if args.legacy else CURRENT_FORMAT_VERSION)

    if args.export_demo is not None:
        export_demo(args.export_demo, skeleton)
        return 0

    try:
        rig_map = RigMap.from_config(args.rig_map)
    except (OSError, ValueError) as e:
        logger.error("Cannot load rig map %s: %s", args.rig_map, e)
        return 1

    session = CharacterSession(
        skeleton,
        rig_map=rig_map,
        config=SessionConfig.from_config(),
        rng=random.Random(args.seed),
    )

    sources = dict(args.clips) if args.clips else demo_motion_assets()
    results = session.load_clips(sources, clip_name=args.source_clip if args.clips else DEFAULT_SOURCE_CLIP)
    failed = [r for r in results if not r.ok]
    for r in failed:
        print(f"FAILED {r.name}: {r.error}")
    if args.dump_clips is not None:
        dump_clips(session, args.dump_clips)

    if args.play:
        session.play(args.play, loop=args.loop, fade=args.fade)
    if args.idle_cycle:
        session.start_idle_cycle()
    if args.limb_spacing is not None:
        session.set_limb_spacing(args.limb_spacing)
    if args.gaze is not None:
        session.set_gaze_target(args.gaze)
    if args.head_intensity is not None:
        session.set_gaze_intensities(head=args.head_intensity)
    if args.emotion:
        session.set_emotion(args.emotion)
    if args.talk:
        session.trigger_scripted_expression("talking")
    if args.surprise:
        session.trigger_scripted_expression("surprise")

    clock = DeltaClock()
    for _ in range(max(0, args.frames)):
        if args.realtime:
            time.sleep(args.dt)
            dt = clock.get_delta()
        else:
            dt = args.dt
        session.advance(dt)

    print(f"t={session.time:.3f}s  clip={session.playback.current_clip_name}  "
          f"mode={session.playback.mode.value}")
    for name, weight in sorted(session.get_expression_weights().items()):
        print(f"  expr {name:<12} {weight:.3f}")
    transforms = session.get_bone_transforms()
    for bone in (b.strip() for b in args.bones.split(",") if b.strip()):
        if bone not in transforms:
            print(f"  bone {bone:<14} (absent)")
            continue
        q = transforms[bone]["rotation"]
        print(f"  bone {bone:<14} q=[{q[0]:+.3f} {q[1]:+.3f} {q[2]:+.3f} {q[3]:+.3f}] "
              f"angle={np.degrees(quat_angle(q)):.1f}deg")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
