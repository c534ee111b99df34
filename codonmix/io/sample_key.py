"""
Sample key parsing and validation.

Author: Kevin R. Roy
"""

from pathlib import Path
from typing import List, Dict
from dataclasses import dataclass
import pandas as pd
import logging

logger = logging.getLogger(__name__)


@dataclass
class Sample:
    """Represents a single sample.

    Attributes:
        sample_id: Unique sample identifier
        chromatogram_path: Path to the ABI (.ab1) chromatogram
        metadata: Additional metadata columns from sample key
    """
    sample_id: str
    chromatogram_path: Path
    metadata: Dict = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}
        self.chromatogram_path = Path(self.chromatogram_path)

    def validate(self) -> List[str]:
        """Validate sample configuration. Returns list of errors."""
        errors = []

        if not self.sample_id:
            errors.append("Empty sample_id")

        if not self.chromatogram_path.exists():
            errors.append(f"Chromatogram not found: {self.chromatogram_path}")

        return errors


def load_sample_key(
    path: Path,
    validate: bool = True
) -> List[Sample]:
    """
    Load samples from a sample key TSV file.

    Required columns:
    - sample_id: Unique sample identifier
    - chromatogram: Path to the ABI chromatogram; relative paths are
      resolved against the sample key's directory

    Additional columns are stored as metadata.

    Args:
        path: Path to sample key TSV
        validate: If True, validate that files exist

    Returns:
        List of Sample objects
    """
    path = Path(path)
    df = pd.read_csv(path, sep='\t', dtype=str)

    # Validate required columns
    if 'sample_id' not in df.columns:
        raise ValueError("Sample key must have 'sample_id' column")

    if 'chromatogram' not in df.columns:
        raise ValueError("Sample key must have 'chromatogram' column")

    duplicated = df['sample_id'][df['sample_id'].duplicated()].tolist()
    if duplicated:
        raise ValueError(f"Sample key has duplicate sample IDs: {', '.join(duplicated[:5])}")

    standard_cols = {'sample_id', 'chromatogram'}

    samples = []
    errors = []

    for _, row in df.iterrows():
        sample_id = str(row['sample_id']).strip()
        chromatogram_path = Path(str(row['chromatogram']).strip())
        if not chromatogram_path.is_absolute():
            chromatogram_path = path.parent / chromatogram_path

        # Collect metadata from other columns
        metadata = {
            k: v for k, v in row.items()
            if k not in standard_cols and pd.notna(v)
        }

        sample = Sample(
            sample_id=sample_id,
            chromatogram_path=chromatogram_path,
            metadata=metadata,
        )

        if validate:
            sample_errors = sample.validate()
            for err in sample_errors:
                errors.append(f"{sample_id}: {err}")

        samples.append(sample)

    if errors:
        logger.warning(f"Sample key validation found {len(errors)} errors:")
        for err in errors[:10]:
            logger.warning(f"  {err}")
        if len(errors) > 10:
            logger.warning(f"  ... and {len(errors) - 10} more")

    logger.info(f"Loaded {len(samples)} samples from {path}")

    return samples


def create_sample_key_template(output_path: Path):
    """Create a template sample key file.

    Args:
        output_path: Path to write template file
    """
    template = """sample_id\tchromatogram\tsite\tcollection_date
SAMPLE_01\tchromatograms/SAMPLE_01.ab1\tclinic_a\t2024-03-01
SAMPLE_02\tchromatograms/SAMPLE_02.ab1\tclinic_a\t2024-03-01
SAMPLE_03\tchromatograms/SAMPLE_03.ab1\tclinic_b\t2024-03-04
"""
    with open(output_path, 'w') as f:
        f.write(template)

    logger.info(f"Created sample key template: {output_path}")
