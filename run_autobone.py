#!/usr/bin/env python3
"""
AutoBone Calibration

Estimates bone lengths from saved AutoBone recordings and prints the
results. With --apply the lengths are written to the config file.

Usage:
    python run_autobone.py                         # Process ~/.autobone/load
    python run_autobone.py -r recordings/ -e 100   # Custom folder and epochs
    python run_autobone.py --target-height 1.72 --apply
"""

import argparse
import sys
from pathlib import Path

from tqdm import tqdm

sys.path.insert(0, str(Path(__file__).parent))

from autobone.config import AutoBoneSettings
from autobone.engine import AutoBoneHandler, AutoBoneListener, AutoBoneProcessType
from autobone.poseframe.recorder import PoseRecorder
from autobone.tracking.skeleton import HEIGHT_OFFSETS


class ConsoleListener(AutoBoneListener):
    """Prints status messages and shows epoch progress."""

    def __init__(self, num_epochs: int, calc_init_error: bool):
        self.total = num_epochs + (1 if calc_init_error else 0)
        self.first_epoch = -1 if calc_init_error else 0
        self.bar = None
        self.success = False
        self.offsets = None

    def on_process_status(self, process_type, message, current, total, eta, completed, success):
        if message:
            tqdm.write(message)
        if completed:
            self._close_bar()
            self.success = success

    def on_epoch(self, epoch):
        if epoch.epoch == self.first_epoch:
            self._close_bar()
            self.bar = tqdm(total=self.total, desc="Epochs", unit="epoch")
        if self.bar is not None:
            self.bar.set_postfix(error=f"{epoch.error:.5f}", rate=f"{epoch.adjust_rate:.4f}")
            self.bar.update(1)

    def on_engine_end(self, offsets):
        self.offsets = offsets

    def _close_bar(self):
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def main():
    parser = argparse.ArgumentParser(description="AutoBone Skeleton Calibration")
    parser.add_argument(
        "--recordings", "-r",
        type=Path,
        default=None,
        help="Folder of recordings to process (default: load_dir from config)"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--epochs", "-e",
        type=int,
        default=None,
        help="Number of optimizer epochs"
    )
    parser.add_argument(
        "--target-height", "-t",
        type=float,
        default=None,
        help="Standing HMD height in meters (default: from the recording)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for frame order"
    )
    parser.add_argument(
        "--export-csv",
        action="store_true",
        help="Export each processed recording to CSV"
    )
    parser.add_argument(
        "--contribution",
        action="store_true",
        help="Log which bones explain the foot slide"
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Save the resulting lengths to the config file"
    )

    args = parser.parse_args()

    settings = AutoBoneSettings.load(args.config)
    if args.recordings is not None:
        settings.load_dir = args.recordings
    if args.epochs is not None:
        settings.autobone.num_epochs = args.epochs
    if args.target_height is not None:
        settings.autobone.target_hmd_height = args.target_height
    if args.seed is not None:
        settings.autobone.random_seed = args.seed
    if args.export_csv:
        settings.autobone.export_csv = True
    if args.contribution:
        settings.autobone.use_bone_contribution = True
    settings.ensure_dirs()

    print("=" * 60)
    print("AUTOBONE")
    print("=" * 60)
    print(f"Recordings: {settings.load_dir}")
    print(f"Epochs:     {settings.autobone.num_epochs}")
    print("=" * 60 + "\n")

    # No live trackers here, only saved recordings
    handler = AutoBoneHandler(PoseRecorder(lambda: []), settings)
    listener = ConsoleListener(settings.autobone.num_epochs, settings.autobone.calc_init_error)
    handler.add_listener(listener)

    handler.start_process_by_type(AutoBoneProcessType.PROCESS)
    handler.wait_idle(AutoBoneProcessType.PROCESS)

    if not listener.success or listener.offsets is None:
        print("\nCalibration failed")
        return 1

    print("\nBone lengths:")
    for offset, value in listener.offsets.items():
        print(f"  {offset.config_key:<12} {value * 100.0:6.2f} cm")
    height = sum(listener.offsets[offset] for offset in HEIGHT_OFFSETS)
    print(f"  {'height':<12} {height * 100.0:6.2f} cm")

    if args.apply:
        handler.apply_values()
        print(f"\nSaved to {settings.config_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
