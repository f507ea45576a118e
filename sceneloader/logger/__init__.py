from .writer import ProgressLogger, Logger
