"""
test_callbacks.py
~~~~~~~~~~~~~~~~~

Unit tests for training callbacks.
"""

import pytest
import os
import sys

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scratchnet.callbacks import Callback, CSVLogger


@pytest.fixture
def log_path(tmp_path):
    return str(tmp_path / 'training.csv')


@pytest.mark.unit
class TestCSVLogger:

    def test_writes_header(self, log_path):
        """Test that the file starts with the header row."""
        CSVLogger(log_path)

        with open(log_path) as f:
            assert f.read() == 'Epoch,Loss\n'

    def test_appends_epochs(self, log_path):
        """Test that each epoch appends one row."""
        csv_logger = CSVLogger(log_path)

        csv_logger.on_epoch_end(10, 0.1)
        csv_logger.on_epoch_end(11, 0.05)

        with open(log_path) as f:
            lines = f.read().splitlines()
        assert lines == ['Epoch,Loss', '10,0.1', '11,0.05']

    def test_existing_file_without_overwrite(self, log_path):
        """Test that an existing file is not clobbered."""
        with open(log_path, 'w') as f:
            f.write('keep me')

        with pytest.raises(FileExistsError):
            CSVLogger(log_path)

        with open(log_path) as f:
            assert f.read() == 'keep me'

    def test_existing_file_with_overwrite(self, log_path):
        """Test that overwrite replaces the previous log."""
        CSVLogger(log_path).on_epoch_end(1, 2.5)

        CSVLogger(log_path, overwrite=True)

        with open(log_path) as f:
            assert f.read() == 'Epoch,Loss\n'


@pytest.mark.unit
class TestCallback:

    def test_base_is_abstract(self):
        with pytest.raises(NotImplementedError):
            Callback().on_epoch_end(1, 0.0)
