import os
import json
import logging
import time
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)

Q_TABLE_KIND = 'q_table'
NETWORK_KIND = 'network'


def _number(entry: Dict[str, Any], key: str, default: float) -> float:
    value = entry.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


class PersistenceManager:
    """Saves Q-tables and networks as JSON blobs indexed by a registry."""

    def __init__(self, model_dir="models"):
        self.model_dir = model_dir
        self.registry_path = os.path.join(model_dir, "registry.json")
        os.makedirs(model_dir, exist_ok=True)
        self._ensure_registry()

    def _ensure_registry(self):
        if not os.path.exists(self.registry_path):
            self._save_registry({})

    def _load_registry(self) -> Dict[str, Any]:
        if not os.path.exists(self.registry_path):
            return {}
        try:
            with open(self.registry_path, 'r') as f:
                registry = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Corrupt registry {self.registry_path}, starting empty: {e}")
            return {}
        if not isinstance(registry, dict):
            logger.warning(f"Registry {self.registry_path} is not a mapping, starting empty")
            return {}
        # Entries without a filename cannot be resolved
        return {k: v for k, v in registry.items()
                if isinstance(v, dict) and isinstance(v.get('filename'), str)}

    def _save_registry(self, registry: Dict[str, Any]):
        with open(self.registry_path, 'w') as f:
            json.dump(registry, f, indent=4)

    def save_q_table(self, q_table: Dict[str, List[float]], metadata: Dict[str, Any],
                     filename: Optional[str] = None) -> str:
        """Save a flat key -> action values mapping."""
        payload = {'q_table': q_table, 'epsilon': metadata.get('epsilon')}
        return self._save(Q_TABLE_KIND, payload, metadata, filename)

    def save_network(self, network: Dict[str, Any], metadata: Dict[str, Any],
                     filename: Optional[str] = None) -> str:
        """Save per-level weights and biases as nested arrays."""
        return self._save(NETWORK_KIND, {'network': network}, metadata, filename)

    def load_q_table(self, identifier: str = 'latest') -> Optional[Dict[str, Any]]:
        """Load a saved Q-table payload ({'q_table': ..., 'epsilon': ...}) or None."""
        payload = self._load(Q_TABLE_KIND, identifier)
        if payload is None or not isinstance(payload.get('q_table'), dict):
            return None
        return payload

    def load_network(self, identifier: str = 'latest') -> Optional[Dict[str, Any]]:
        """Load a saved network dict or None."""
        payload = self._load(NETWORK_KIND, identifier)
        if payload is None:
            return None
        return payload.get('network')

    def _save(self, kind: str, payload: Dict[str, Any], metadata: Dict[str, Any],
              filename: Optional[str]) -> str:
        timestamp = time.time()
        episode = metadata.get('episode_count', 0)
        if filename is None:
            filename = f"{kind}_ep{episode}_{int(timestamp * 1000)}.json"
        filepath = os.path.join(self.model_dir, filename)

        with open(filepath, 'w') as f:
            json.dump(dict(payload, kind=kind), f)

        registry = self._load_registry()
        registry[filename] = {
            'filename': filename,
            'kind': kind,
            'timestamp': timestamp,
            'episode_count': episode,
            'mean_reward': metadata.get('mean_reward', 0.0),
            'best_distance': metadata.get('best_distance', 0.0),
            'created_at': time.ctime(timestamp)
        }
        self._save_registry(registry)
        return filename

    def _load(self, kind: str, identifier: str) -> Optional[Dict[str, Any]]:
        """Resolve identifier ('latest', 'best' or a filename) and read the file.

        Missing or unreadable files yield None.
        """
        registry = self._load_registry()
        entries = [e for e in registry.values() if e.get('kind') == kind]

        target_filename = None
        if identifier == 'best':
            # Equal distances resolve to the earliest save that reached them
            if entries:
                target_filename = max(entries, key=lambda e: (
                    _number(e, 'best_distance', -float('inf')), -_number(e, 'timestamp', 0.0)))['filename']
        elif identifier == 'latest':
            if entries:
                target_filename = max(entries, key=lambda e: _number(e, 'timestamp', 0.0))['filename']
        else:
            target_filename = identifier

        if not target_filename:
            return None

        filepath = os.path.join(self.model_dir, target_filename)
        try:
            with open(filepath, 'r') as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Could not load {filepath}: {e}")
            return None
        if not isinstance(payload, dict) or payload.get('kind', kind) != kind:
            logger.warning(f"{filepath} does not hold a {kind}")
            return None
        return payload

    def list_models(self) -> List[Dict[str, Any]]:
        registry = self._load_registry()
        # Also list files that are not in the registry
        files = [f for f in os.listdir(self.model_dir)
                 if f.endswith('.json') and f != os.path.basename(self.registry_path)]
        models = []
        for f in files:
            if f in registry:
                models.append(registry[f])
            else:
                filepath = os.path.join(self.model_dir, f)
                timestamp = os.path.getmtime(filepath)
                models.append({
                    'filename': f,
                    'kind': 'unknown',
                    'timestamp': timestamp,
                    'episode_count': -1,
                    'mean_reward': 0.0,
                    'best_distance': 0.0,
                    'created_at': time.ctime(timestamp)
                })

        models.sort(key=lambda x: _number(x, 'timestamp', 0.0), reverse=True)
        return models
