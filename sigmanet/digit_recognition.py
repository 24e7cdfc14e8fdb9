"""
digit_recognition.py
~~~~~~~~~~~~~~~~~~~~

Command line driver that trains and tests a digit classifier on MNIST CSV
files.

Usage:
    sigmanet-digits train 3 --train-csv mnist_train.csv --test-csv mnist_test.csv
    sigmanet-digits load trained_3.json --test-csv mnist_test.csv --image-dir out/

Training builds a [784, hidden, 10] network, trains it for the requested
number of epochs, saves it as JSON and then reports test accuracy.
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Optional, Sequence

from sigmanet.digit_image import save_digit_image
from sigmanet.errors import InputSizeError, NetworkError, PersistenceError
from sigmanet.logging_setup import configure_logging
from sigmanet.mnist_loader import IMAGE_SIZE, NUM_CLASSES, load_csv, predicted_label
from sigmanet.network import Network
from sigmanet.training import Sample

logger = logging.getLogger(__name__)

DEFAULT_LEARNING_RATE = 0.1
DEFAULT_HIDDEN = 200


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sigmanet-digits',
        description='Train or load a sigmoid network for MNIST digits.'
    )
    parser.add_argument(
        '--log-level',
        default=None,
        help='Logging level (defaults to $LOG_LEVEL or INFO)'
    )
    parser.add_argument(
        '--test-csv',
        default=os.getenv('MNIST_TEST_CSV', 'mnist_test.csv'),
        help='MNIST test CSV file'
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    train_parser = subparsers.add_parser('train', help='Train a new network')
    train_parser.add_argument('epochs', type=int, help='Number of epochs')
    train_parser.add_argument(
        '--train-csv',
        default=os.getenv('MNIST_TRAIN_CSV', 'mnist_train.csv'),
        help='MNIST training CSV file'
    )
    train_parser.add_argument(
        '--learning-rate', type=float, default=DEFAULT_LEARNING_RATE
    )
    train_parser.add_argument('--hidden', type=int, default=DEFAULT_HIDDEN)
    train_parser.add_argument(
        '--seed', type=int, default=None,
        help='Seed for weight initialization'
    )
    train_parser.add_argument(
        '--output', default=None,
        help='Where to save the network (default: trained_<epochs>.json)'
    )

    load_parser = subparsers.add_parser('load', help='Load a saved network')
    load_parser.add_argument('file', help='Saved network JSON file')
    load_parser.add_argument(
        '--image-dir', default=None,
        help='Write PNG images of misclassified samples here'
    )

    return parser


def train(
    samples: Sequence[Sample],
    epochs: int,
    learning_rate: float = DEFAULT_LEARNING_RATE,
    hidden: int = DEFAULT_HIDDEN,
    seed: Optional[int] = None
) -> Network:
    """Build a fresh [784, hidden, 10] network and train it."""
    print("==== Training =====")
    start = time.time()
    net = Network(learning_rate, IMAGE_SIZE, hidden, NUM_CLASSES, seed=seed)
    print(f"Training with {epochs} epochs")

    def on_epoch_complete(data):
        print(f"Completed epoch {data['epoch']}/{data['total_epochs']}")

    net.train_epochs(samples, epochs, callback=on_epoch_complete)

    print(f"Completed training in {time.time() - start:.2f}s")
    return net


def test(
    net: Network,
    samples: Sequence[Sample],
    image_dir: Optional[str] = None
) -> int:
    """
    Report how many samples the network classifies correctly.

    Args:
        net: Network to test
        samples: Test samples
        image_dir: When set, a PNG is written for every misclassified sample

    Returns:
        int: Number of correct predictions
    """
    print("===== Testing =====")
    start = time.time()

    if image_dir:
        os.makedirs(image_dir, exist_ok=True)

    num_correct = 0
    for index, sample in enumerate(samples):
        prediction = predicted_label(net.predict(sample.input))
        actual = sample.label

        if prediction == actual:
            num_correct += 1
        elif image_dir:
            path = os.path.join(
                image_dir, f"sample_{index}_pred{prediction}_actual{actual}.png"
            )
            save_digit_image(
                sample.input, path,
                title=f"Predicted: {prediction} | Actual: {actual}"
            )
            logger.debug(f"Wrote misclassified sample to {path}")

    total = len(samples)
    accuracy = (num_correct / total) * 100 if total else 0.0

    print(f"Completed testing in {time.time() - start:.2f}s")
    print(f"{num_correct} correct out of {total} test samples")
    print(f"Accuracy: {accuracy:.2f}")
    return num_correct


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the ``sigmanet-digits`` console script."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == 'train':
            if args.epochs < 1:
                logger.error(f"Invalid number of epochs: {args.epochs}")
                return 1

            training_samples = load_csv(args.train_csv)
            net = train(
                training_samples,
                args.epochs,
                learning_rate=args.learning_rate,
                hidden=args.hidden,
                seed=args.seed
            )

            file_name = args.output or f"trained_{args.epochs}.json"
            print(f"Saving as {file_name}")
            net.save(file_name)
            image_dir = None
        else:
            net = Network.load(args.file)
            print(f"Loaded network {args.file}")
            image_dir = args.image_dir

        test_samples = load_csv(args.test_csv)
        test(net, test_samples, image_dir=image_dir)

    except PersistenceError as e:
        action = 'saving' if args.command == 'train' else 'loading'
        logger.error(f"Error while {action} network: {e}")
        return 1
    except InputSizeError as e:
        logger.error(f"Network does not fit the test data: {e}")
        return 1
    except NetworkError as e:
        logger.error(f"Invalid network configuration: {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Error reading MNIST data: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
