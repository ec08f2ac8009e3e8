import pandas as pd
import json
import logging
import os
from datetime import datetime
from typing import Dict, List

from session import AnalysisOutcome


class SkinReportWriter:
    """Collects analysis outcomes and writes them to CSV or JSON"""

    def __init__(self, output_dir: str = 'data'):
        self.output_dir = output_dir
        self.logger = self._setup_logger()
        self.records: List[Dict] = []

    def _setup_logger(self):
        """Configure logging"""
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s'
        )
        return logging.getLogger(__name__)

    def add(self, outcome: AnalysisOutcome, source: str = '') -> Dict:
        record = outcome.to_dict()
        record['source'] = source
        self.records.append(record)
        return record

    def _default_filename(self, extension: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"skin_results_{timestamp}.{extension}"

    def _output_path(self, filename: str) -> str:
        if not os.path.exists(self.output_dir):
            os.makedirs(self.output_dir)
        return os.path.join(self.output_dir, filename)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per analysis, recommendations flattened to program names"""
        rows = []
        for record in self.records:
            row = {key: value for key, value in record.items() if key != 'recommendations'}
            row['recommendations'] = '; '.join(
                rec['program'] for rec in record['recommendations']
            )
            rows.append(row)

        columns = [
            'timestamp', 'source', 'overall', 'smoothness', 'evenness',
            'clarity', 'label', 'policy', 'recommendations'
        ]
        return pd.DataFrame(rows, columns=columns)

    def save_to_csv(self, filename: str = None) -> str:
        """Save collected results to CSV"""
        path = self._output_path(filename or self._default_filename('csv'))
        try:
            self.to_dataframe().to_csv(path, index=False)
        except OSError as e:
            self.logger.error(f"Error saving to CSV: {str(e)}")
            raise
        self.logger.info(f"Saved {len(self.records)} results to {path}")
        return path

    def save_to_json(self, filename: str = None) -> str:
        """Save collected results to JSON"""
        path = self._output_path(filename or self._default_filename('json'))
        try:
            with open(path, 'w') as f:
                json.dump(self.records, f, indent=4)
        except OSError as e:
            self.logger.error(f"Error saving to JSON: {str(e)}")
            raise
        self.logger.info(f"Saved {len(self.records)} results to {path}")
        return path
