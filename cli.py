#!/usr/bin/env python3
import argparse
import logging
import sys

from crt_filter import BlendWeights, CrtPixelScaler, get_output_path, load_image, save_image

DEFAULT_BLEND_MULTIPLIER = 1.5


def build_parser():
    defaults = BlendWeights()
    parser = argparse.ArgumentParser(
        prog='crt-filter',
        description='Scale an image up 5x with a soft CRT-style blend between neighboring pixels')
    parser.add_argument('image_path', help='Path to the image file to process')
    parser.add_argument('blend_multiplier', nargs='?', type=float, default=DEFAULT_BLEND_MULTIPLIER,
                        help=f'Global multiplier for all neighbor weights (default: {DEFAULT_BLEND_MULTIPLIER})')

    # Weight options
    parser.add_argument('--center-weight', type=float, default=defaults.center_weight,
                        help=f'Weight of the centre cell (default: {defaults.center_weight})')
    parser.add_argument('--immediate-weight', type=float, default=defaults.immediate_neighbor_weight,
                        help=f'Weight of the 4 direct neighbors (default: {defaults.immediate_neighbor_weight})')
    parser.add_argument('--diagonal-weight', type=float, default=defaults.diagonal_neighbor_weight,
                        help=f'Weight of diagonal neighbors; halved and quartered further out '
                             f'(default: {defaults.diagonal_neighbor_weight})')
    parser.add_argument('--edge-strength', type=float, default=defaults.edge_blend_strength,
                        help=f'Weight of the straight neighbors two cells away (default: {defaults.edge_blend_strength})')

    # Output options
    parser.add_argument('--output', help='Output path (default: input path with _crt before the extension)')
    parser.add_argument('--workers', type=int, default=1, help='Number of threads to scale with (default: 1)')
    parser.add_argument('--verbose', action='store_true', help='Print debug logging')
    return parser


def print_usage():
    print("Usage: crt-filter <image-path> [blend-multiplier]")
    print("Example: crt-filter image.png 2.0")


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        print_usage()
        return

    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    output_path = args.output or get_output_path(args.image_path)

    print(f"Loading image: {args.image_path}")
    original = load_image(args.image_path)
    height, width = original.shape[:2]
    print(f"Original size: {width}x{height}")

    weights = BlendWeights(
        center_weight=args.center_weight,
        immediate_neighbor_weight=args.immediate_weight,
        diagonal_neighbor_weight=args.diagonal_weight,
        edge_blend_strength=args.edge_strength,
        global_blend_multiplier=args.blend_multiplier,
    )
    scaler = CrtPixelScaler(weights)

    print(f"Applying CRT pixel scaling (5x) with blend multiplier {args.blend_multiplier}...")
    scaled = scaler.scale_and_blur(original, workers=args.workers)
    scaled_height, scaled_width = scaled.shape[:2]
    print(f"Scaled size: {scaled_width}x{scaled_height}")

    save_image(scaled, output_path)
    print(f"Saved to: {output_path}")


if __name__ == "__main__":
    main()
