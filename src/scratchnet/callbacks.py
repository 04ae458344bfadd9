"""
callbacks.py
~~~~~~~~~~~~

Hooks invoked by ``NeuralNetwork.fit`` at the end of every epoch.
"""

import os
import logging

logger = logging.getLogger(__name__)


class Callback:
    """Base class for training callbacks."""

    def on_epoch_end(self, epoch: int, loss: float) -> None:
        raise NotImplementedError


class CSVLogger(Callback):
    """
    Append one ``epoch,loss`` row per epoch to a CSV file.

    Example:
        >>> csv_logger = CSVLogger('training.csv', overwrite=True)
        >>> net.fit(x, y, epochs=10, batch_size=32, callbacks=[csv_logger])
    """

    HEADER = 'Epoch,Loss\n'

    def __init__(self, file_path: str, overwrite: bool = False):
        """
        Create the log file and write its header.

        Args:
            file_path: Path of the CSV file
            overwrite: Replace an existing file instead of failing

        Raises:
            FileExistsError: If the file exists and overwrite is False
        """
        if os.path.exists(file_path) and not overwrite:
            raise FileExistsError(f"Log file already exists at {file_path}")

        self.file_path = file_path
        with open(self.file_path, 'w') as f:
            f.write(self.HEADER)

        logger.debug(f"CSV log created at {self.file_path}")

    def on_epoch_end(self, epoch: int, loss: float) -> None:
        with open(self.file_path, 'a') as f:
            f.write(f"{epoch},{loss}\n")
