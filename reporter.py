"""CommitHound Reporter - JSON 출력"""
import json
from pathlib import Path
from datetime import datetime

from detection_results import DetectionResults


def export_json(results: DetectionResults, version: str, filepath: str = None) -> str:
    """JSON 형식으로 내보내기"""
    output = {
        'tool': {'name': 'commithound', 'version': version},
        'scan_time': datetime.now().isoformat(),
        'successful': results.successful(),
    }
    output.update(results.to_dict())
    json_str = json.dumps(output, indent=2, ensure_ascii=False, default=str)
    if filepath:
        Path(filepath).write_text(json_str, encoding='utf-8')
    return json_str
