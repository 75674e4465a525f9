import os

SEED = 1234

BATCH_SIZE = 1024
TRANSFORM_BATCH_SIZE = 2048

MIN_EPOCHS = 5
MAX_EPOCHS = 128
SLOPE_WINDOW = 5

TILE_SIZE = 32

INITIAL_WEIGHT_STD = 0.1
GAUSSIAN_LEARNING_RATE_SCALE = 0.01

_PACKAGE_DIR = os.path.abspath(os.path.dirname(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(_PACKAGE_DIR, '..'))
OUTPUT_DIR = os.path.join(PROJECT_ROOT, "out")

CONFIG_FILE = "config.yaml"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_FIGURE_SIZE = (10, 6)
