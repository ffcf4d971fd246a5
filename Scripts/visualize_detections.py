import argparse
import logging
from pathlib import Path

import cv2

from yolo_heat import (
    DecoderConfig,
    HeatmapConfig,
    LetterboxConfig,
    draw_detections,
    load_pipeline,
    load_pipeline_profile,
    overlay_heatmap,
    process_stream,
)

logger = logging.getLogger("visualize_detections")


def _render(pipeline, frame, detections, with_heatmap: bool):
    vis = frame
    if with_heatmap:
        h, w = frame.shape[:2]
        vis = overlay_heatmap(vis, pipeline.heatmap((w, h), detections))
    return draw_detections(vis, detections, labels=pipeline.labels, show_score=True)


def _iter_frames(cap, every: int, max_frames: int):
    frame_idx = 0
    yielded = 0
    while True:
        ok, frame = cap.read()
        if not ok or frame is None:
            return
        frame_idx += 1
        if (frame_idx - 1) % every != 0:
            continue
        yield frame
        yielded += 1
        if max_frames and yielded >= max_frames:
            return


def main() -> int:
    parser = argparse.ArgumentParser(description="Run YOLO detection and visualize boxes, labels and a confidence heatmap.")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    parser.add_argument("--model", default="models/yolov8n_float32.tflite", help="Model with NMS in graph (.tflite/.onnx).")
    parser.add_argument("--labels", default=None, help="Label file (one name per line, or metadata.yaml names:).")
    parser.add_argument("--profile", default=None, help="Pipeline profile JSON; overrides --imgsz/--conf/--all-classes.")
    parser.add_argument("--imgsz", type=int, default=640, help="Letterbox input size (e.g., 640).")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--all-classes", action="store_true", help="Keep every class, not only household objects.")
    parser.add_argument("--heatmap", action="store_true", help="Overlay the Gaussian confidence heatmap.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / tflite.")
    parser.add_argument("--cpu", action="store_true", help="Skip GPU delegate / CUDA provider.")
    parser.add_argument("--show", action="store_true", help="Show a window with visualized detections.")
    parser.add_argument("--out", default=None, help="Optional output path (image or video) to save the visualization.")
    parser.add_argument("--every", type=int, default=1, help="Process every Nth frame for video/webcam.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.profile:
        profile = load_pipeline_profile(Path(args.profile))
        letterbox_cfg = profile.letterbox_config()
        decoder_cfg = profile.decoder_config()
        heatmap_cfg = profile.heatmap_config()
        labels_path = args.labels or profile.labels_path
    else:
        if args.imgsz < 32:
            raise ValueError("--imgsz must be >= 32")
        letterbox_cfg = LetterboxConfig(size=int(args.imgsz))
        decoder_cfg = DecoderConfig(conf_threshold=args.conf, restrict_to_allow_set=not args.all_classes)
        heatmap_cfg = HeatmapConfig()
        labels_path = args.labels

    if args.every < 1:
        raise ValueError("--every must be >= 1")
    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    providers = ["CPUExecutionProvider"] if args.cpu else None
    with load_pipeline(
        model_path=args.model,
        backend=args.backend,
        labels_path=labels_path,
        letterbox_cfg=letterbox_cfg,
        decoder_cfg=decoder_cfg,
        heatmap_cfg=heatmap_cfg,
        onnx_providers=providers,
        use_gpu=not args.cpu,
    ) as pipeline:
        if args.image is not None:
            img = cv2.imread(args.image)
            if img is None:
                raise FileNotFoundError(f"Could not read image at path: {args.image}")

            detections = pipeline(img)
            vis = _render(pipeline, img, detections, args.heatmap)
            if args.out:
                if not cv2.imwrite(args.out, vis):
                    raise RuntimeError(f"Failed to write output image: {args.out}")

            if args.show:
                cv2.imshow("detections", vis)
                cv2.waitKey(0)
                cv2.destroyAllWindows()

            for item in pipeline.labeled(detections):
                print(item.label, f"{item.score:.3f}", item.box)
            return 0

        if args.video is not None:
            cap = cv2.VideoCapture(args.video)
            if not cap.isOpened():
                raise FileNotFoundError(f"Could not open video: {args.video}")
        else:
            cap = cv2.VideoCapture(int(args.webcam))
            if not cap.isOpened():
                raise RuntimeError(f"Could not open webcam index: {args.webcam}")

        writer = None
        failed = 0

        try:
            for result in process_stream(pipeline, _iter_frames(cap, args.every, args.max_frames)):
                if not result.ok:
                    failed += 1
                    continue

                vis = _render(pipeline, result.frame, result.detections, args.heatmap)
                if args.out and writer is None:
                    fps = cap.get(cv2.CAP_PROP_FPS)
                    if fps is None or fps <= 0:
                        fps = 30.0
                    h, w = vis.shape[:2]
                    fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                    writer = cv2.VideoWriter(args.out, fourcc, fps, (w, h))
                    if not writer.isOpened():
                        raise RuntimeError(f"Failed to open video writer: {args.out}")

                if writer is not None:
                    writer.write(vis)

                if args.show:
                    cv2.imshow("detections", vis)
                    key = cv2.waitKey(1) & 0xFF
                    if key in (27, ord("q")):
                        break
        finally:
            cap.release()
            if writer is not None:
                writer.release()
            if args.show:
                cv2.destroyAllWindows()

        if failed:
            logger.warning("%d frame(s) failed and were skipped.", failed)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
