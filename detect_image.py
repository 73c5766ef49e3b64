import argparse
import logging

import cv2
import matplotlib.pyplot as plt

from banana_config import add_config_arguments, config_from_args
from banana_detector import BananaDetector

logger = logging.getLogger(__name__)


def detect_file(det, img_path, output_path=None):
    """Run the detector on one image file; save the overlay if `output_path` is given."""
    bgr = cv2.imread(img_path, cv2.IMREAD_COLOR)
    if bgr is None:
        raise FileNotFoundError(f"Could not read image {img_path}")

    final_vis, results = det.process_bgr(bgr)
    for r in results:
        logger.info("banana at x=%d y=%d w=%d h=%d", *r.bbox)
    if not results:
        logger.info("No banana in %s", img_path)

    if output_path:
        if not cv2.imwrite(output_path, final_vis):
            raise OSError(f"Could not write {output_path}")
        logger.info("Wrote %s", output_path)
    return final_vis, results


def main(argv=None):
    parser = argparse.ArgumentParser(description="Banana detector on a single image")
    parser.add_argument("image", help="input image path")
    parser.add_argument("-o", "--output", help="save the annotated image here instead of showing it")
    parser.add_argument("--verbose", action="store_true")
    add_config_arguments(parser)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s [%(levelname)s] %(message)s')
    det = BananaDetector(config_from_args(args))
    final_vis, results = detect_file(det, args.image, args.output)

    if not args.output:
        plt.imshow(cv2.cvtColor(final_vis, cv2.COLOR_BGR2RGB)); plt.axis("off")
        plt.tight_layout(); plt.show()
    return results


if __name__ == "__main__":
    main()
