import argparse
import logging
import threading
import time

import cv2
import matplotlib.pyplot as plt

from banana_config import add_config_arguments, config_from_args
from banana_detector import BananaDetector, InvalidFrame, validate_frame

logger = logging.getLogger(__name__)

# ========================== Config ==========================
CAMERA_INDEX = 0       # use 1 if you have multiple cameras
FRAME_WIDTH  = 640
FRAME_HEIGHT = 480
PAUSE_SEC    = 0.001   # Matplotlib UI update pause
QUIT_KEYS    = ("q", "Q", "escape")
TITLE        = "Press Q to quit"


def run_live(det, cap, show, quit_event, max_frames=None):
    """
    Grab -> detect -> show until the quit event is set, the source runs dry or
    `max_frames` frames have been processed.
    Returns: (frames processed, seconds spent in the detector only).
    """
    proc_time_sum = 0.0    # sum of *processing* times (excludes I/O and display)
    n_proc_frames = 0
    frame_shape = None

    while not quit_event.is_set():
        if max_frames is not None and n_proc_frames >= max_frames:
            break
        ok, frame = cap.read()
        if not ok:
            break

        validate_frame(frame)
        # The detector assumes a fixed frame size for the whole session
        if frame_shape is None:
            frame_shape = frame.shape
        elif frame.shape != frame_shape:
            raise InvalidFrame(f"frame size changed from {frame_shape} to {frame.shape}")

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        # ---- Compute-only timer ----
        t0 = time.perf_counter()
        out, results = det.process_rgb(rgb)
        proc_time_sum += (time.perf_counter() - t0)
        n_proc_frames += 1

        if results:
            logger.debug("frame %d: %d banana(s) at %s", n_proc_frames, len(results),
                         [r.bbox for r in results])
        show(out)

    return n_proc_frames, proc_time_sum


def build_parser():
    parser = argparse.ArgumentParser(description="Live banana detector (press Q to quit)")
    parser.add_argument("--camera", type=int, default=CAMERA_INDEX, help="camera index")
    parser.add_argument("--width", type=int, default=FRAME_WIDTH)
    parser.add_argument("--height", type=int, default=FRAME_HEIGHT)
    parser.add_argument("--verbose", action="store_true", help="log per-frame details")
    return add_config_arguments(parser)


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s [%(levelname)s] %(message)s')
    det = BananaDetector(config_from_args(args))

    # =================== Open the camera ====================
    cap = cv2.VideoCapture(args.camera)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open camera {args.camera}")
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, args.width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, args.height)
    logger.info("Camera %d opened, requested %dx%d", args.camera, args.width, args.height)

    # =================== Set up Matplotlib figure =================
    plt.ion()  # interactive mode: non-blocking updates
    fig, ax = plt.subplots(figsize=(10, 7.5))
    fig.canvas.manager.set_window_title("Banana Detector (press Q to quit)")
    ax.set_title(TITLE)
    ax.axis("off")
    fig.tight_layout()

    quit_event = threading.Event()

    def on_key(event):
        if event.key in QUIT_KEYS:
            quit_event.set()

    fig.canvas.mpl_connect("key_press_event", on_key)
    fig.canvas.mpl_connect("close_event", lambda event: quit_event.set())

    im = None

    def show(out_rgb):
        nonlocal im
        if im is None:
            im = ax.imshow(out_rgb)
        else:
            im.set_data(out_rgb)
        plt.pause(PAUSE_SEC)  # allow UI to refresh without blocking

    wall_start = time.perf_counter()  # wall-clock timer for end-to-end throughput
    try:
        n_proc_frames, proc_time_sum = run_live(det, cap, show, quit_event)
    finally:
        # Always release the camera and close the figure cleanly
        cap.release()
        plt.ioff()
        plt.close(fig)

    # =================== Print simple stats to console ==================
    wall_fps = n_proc_frames / (time.perf_counter() - wall_start) if n_proc_frames else 0.0
    proc_fps = n_proc_frames / proc_time_sum if proc_time_sum > 0 else 0.0
    print(f"Frames processed: {n_proc_frames}")
    print(f"Average processing FPS (compute only): {proc_fps:.2f}")
    print(f"End-to-end throughput (incl. I/O + plotting): {wall_fps:.2f} FPS")


if __name__ == "__main__":
    main()
