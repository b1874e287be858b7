import argparse
import signal
import sys

from .config import FiducialConfig, MqttConfig, load_config
from .worker import FiducialWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Detect ArUco fiducials and estimate their poses")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--camera-frame")
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--dict")
    ap.add_argument("--fiducial-len", type=float)
    ap.add_argument("--fiducial-len-override", help='e.g. "0.2: 7, 0.05: 100-120"')
    ap.add_argument("--ignore-fiducials", help='e.g. "1,4,9-12"')
    ap.add_argument("--decimation", type=int)
    ap.add_argument("--no-pose", action="store_true")
    ap.add_argument("--no-tf", action="store_true")
    ap.add_argument("--invert-image", action="store_true")
    ap.add_argument("--publish-images", action="store_true")
    ap.add_argument("--save-frames", action="store_true")
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--synthetic-markers", type=int, nargs="+", help="Marker ids drawn into dry-run frames")

    ap.add_argument("--publish", action="store_true", help="Enable MQTT publishing")
    ap.add_argument("--broker-ip")
    ap.add_argument("--broker-port", type=int)

    return ap


def _apply_args(cfg: FiducialConfig, args: argparse.Namespace) -> FiducialConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        camera_name=args.camera_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        camera_frame=args.camera_frame,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        dictionary=args.dict,
        fiducial_len=args.fiducial_len,
        fiducial_len_override=args.fiducial_len_override,
        ignore_fiducials=args.ignore_fiducials,
        frame_decimation=args.decimation,
        do_pose_estimation=False if args.no_pose else None,
        publish_fiducial_tf=False if args.no_tf else None,
        invert_image=True if args.invert_image else None,
        publish_images=True if args.publish_images else None,
        save_frames=True if args.save_frames else None,
        dry_run=True if args.dry_run else None,
        synthetic_markers=args.synthetic_markers,
    )

    if args.publish or args.broker_ip or args.broker_port:
        mq = cfg.mqtt or MqttConfig()
        if args.publish:
            mq.enabled = True
        if args.broker_ip:
            mq.broker_ip = args.broker_ip
        if args.broker_port:
            mq.broker_port = args.broker_port
        cfg.mqtt = mq
    return cfg.validate()


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else FiducialConfig()
    cfg = _apply_args(cfg, args)

    worker = FiducialWorker(cfg)

    def _handle_signal(_sig, _frame):
        worker.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = worker.run()
    print(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
