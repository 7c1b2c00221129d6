"""
Model persistence and metadata storage for trained HMM models.

This module handles serialization/deserialization of HMM models using joblib
and manages JSON metadata storage with training statistics and the graph the
model was trained on.
"""

import json
import joblib
from pathlib import Path
from typing import Dict, Any, Tuple, List, Union
from datetime import datetime
import numpy as np

from ..hmm.model import ExplicitHMM
from ..exceptions import PersistenceError, ModelValidationError
from ..logger import get_logger

logger = get_logger(__name__)


class ModelPersistence:
    """
    Handles model serialization, deserialization, and metadata management.

    Every model is stored as ``<name>.pkl`` next to ``<name>_meta.json``.
    """

    def __init__(self, models_dir: Union[str, Path] = "models"):
        """
        Initialize ModelPersistence with target directory.

        Args:
            models_dir: Directory to store models and metadata (default: "models")
        """
        self.models_dir = Path(models_dir)
        self.models_dir.mkdir(parents=True, exist_ok=True)

        logger.debug(f"ModelPersistence initialized: {self.models_dir}")

    def _paths(self, name: str) -> Tuple[Path, Path]:
        safe_name = self._sanitize_filename(name)
        if not safe_name:
            raise PersistenceError(f"Model name {name!r} contains no usable characters")
        return self.models_dir / f"{safe_name}.pkl", self.models_dir / f"{safe_name}_meta.json"

    def save_model(self,
                   name: str,
                   model: ExplicitHMM,
                   metadata: Dict[str, Any],
                   overwrite: bool = False) -> Tuple[str, str]:
        """
        Save HMM model and metadata to disk.

        Args:
            name: Model name
            model: Trained ExplicitHMM
            metadata: Training metadata dictionary
            overwrite: Whether to overwrite existing files (default: False)

        Returns:
            Tuple of (model_path, metadata_path) for saved files

        Raises:
            PersistenceError: If saving fails or files exist without overwrite
        """
        model_path, metadata_path = self._paths(name)

        if not overwrite:
            for path in (model_path, metadata_path):
                if path.exists():
                    raise PersistenceError(f"File already exists: {path}")

        serializable_metadata = self._prepare_metadata_for_serialization(metadata)
        serializable_metadata.update({
            'name': name,
            'saved_at': datetime.now().isoformat(),
            'model_file': model_path.name,
            'metadata_file': metadata_path.name,
            'model_class': model.__class__.__name__,
            'model_parameters': {
                'n_states': model.n_states,
                'n_outputs': model.n_outputs
            }
        })

        try:
            logger.debug(f"Saving model to: {model_path}")
            joblib.dump(model, model_path, compress=3)

            logger.debug(f"Saving metadata to: {metadata_path}")
            with open(metadata_path, 'w', encoding='utf-8') as f:
                json.dump(serializable_metadata, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save model {name}: {e}")

        logger.info(f"Saved model {name}: {model_path}")

        return str(model_path), str(metadata_path)

    def load_model(self, name: str) -> Tuple[ExplicitHMM, Dict[str, Any]]:
        """
        Load HMM model and metadata from disk.

        Args:
            name: Model name

        Returns:
            Tuple of (model, metadata)

        Raises:
            PersistenceError: If loading fails, files are missing or the model is inconsistent
        """
        model_path, metadata_path = self._paths(name)

        for path in (model_path, metadata_path):
            if not path.exists():
                raise PersistenceError(f"File not found: {path}")

        try:
            logger.debug(f"Loading model from: {model_path}")
            model = joblib.load(model_path)

            logger.debug(f"Loading metadata from: {metadata_path}")
            with open(metadata_path, 'r', encoding='utf-8') as f:
                metadata = json.load(f)
        except (OSError, EOFError, ValueError) as e:
            raise PersistenceError(f"Failed to load model {name}: {e}")

        if not isinstance(model, ExplicitHMM):
            raise PersistenceError(f"Loaded object is not an ExplicitHMM: {type(model)}")

        self._validate_model_metadata_consistency(model, metadata)

        logger.info(f"Loaded model {name}")

        return model, metadata

    def list_available_models(self) -> List[Dict[str, Any]]:
        """
        List all available models with their basic information.

        Returns:
            List of dictionaries with model information, sorted by name
        """
        models_info = []

        for model_file in sorted(self.models_dir.glob("*.pkl")):
            name = model_file.stem
            metadata_file = self.models_dir / f"{name}_meta.json"

            info = {
                'name': name,
                'model_file': str(model_file),
                'metadata_file': str(metadata_file),
                'metadata_exists': metadata_file.exists()
            }

            if metadata_file.exists():
                try:
                    with open(metadata_file, 'r', encoding='utf-8') as f:
                        metadata = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Unreadable metadata {metadata_file}: {e}")
                    info['metadata_error'] = True
                else:
                    info.update({
                        'n_states': metadata.get('model_parameters', {}).get('n_states'),
                        'n_outputs': metadata.get('model_parameters', {}).get('n_outputs'),
                        'converged': metadata.get('converged', 'unknown'),
                        'final_log_likelihood': metadata.get('final_log_likelihood', 'unknown'),
                        'saved_at': metadata.get('saved_at', 'unknown')
                    })

            models_info.append(info)

        return models_info

    def delete_model(self, name: str) -> bool:
        """
        Delete model and metadata files.

        Returns:
            True if any file was deleted, False otherwise
        """
        deleted_files = []
        for path in self._paths(name):
            if path.exists():
                path.unlink()
                deleted_files.append(str(path))

        if deleted_files:
            logger.info(f"Deleted files for model {name}: {deleted_files}")
            return True

        logger.warning(f"No files found to delete for model: {name}")
        return False

    def _sanitize_filename(self, name: str) -> str:
        """
        Sanitize model name for use as filename.

        Returns:
            Lowercase string of alphanumerics and underscores
        """
        safe_name = name.replace(' ', '_').replace('-', '_')
        safe_name = ''.join(c for c in safe_name if c.isalnum() or c == '_')
        return safe_name.lower()

    def _prepare_metadata_for_serialization(self, value: Any) -> Any:
        """Convert numpy arrays and scalars nested in ``value`` to JSON types."""
        if isinstance(value, np.ndarray):
            return value.tolist()
        if isinstance(value, np.integer):
            return int(value)
        if isinstance(value, np.floating):
            return float(value)
        if isinstance(value, dict):
            return {key: self._prepare_metadata_for_serialization(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._prepare_metadata_for_serialization(item) for item in value]
        return value

    def _validate_model_metadata_consistency(self, model: ExplicitHMM, metadata: Dict[str, Any]):
        """
        Validate that loaded model is consistent with its metadata.

        Raises:
            PersistenceError: If inconsistencies are found
        """
        model_params = metadata.get('model_parameters', {})

        for key in ('n_states', 'n_outputs'):
            if model_params.get(key) != getattr(model, key):
                raise PersistenceError(
                    f"Model {key} mismatch: metadata={model_params.get(key)}, "
                    f"model={getattr(model, key)}"
                )

        try:
            model.validate_stochastic_matrices()
        except ModelValidationError as e:
            raise PersistenceError(f"Loaded model has invalid stochastic matrices: {e}")
