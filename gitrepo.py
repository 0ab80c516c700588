"""CommitHound - 검사 대상 파일(Addition) 수집 (git staged 변경분 / 디렉토리)"""
import os
import logging
import subprocess
from pathlib import Path
from typing import List

from detectors import Addition

logger = logging.getLogger('commithound')

DEFAULT_EXCLUDE_DIRS = ['.git', 'node_modules', '__pycache__', '.venv', 'venv']


class GitError(Exception):
    pass


def _git(repo_path: str, *args: str) -> bytes:
    try:
        result = subprocess.run(['git', *args], capture_output=True, cwd=repo_path)
    except FileNotFoundError as e:
        raise GitError("git이 설치되어 있지 않습니다.") from e
    if result.returncode != 0:
        raise GitError(result.stderr.decode('utf-8', errors='replace').strip())
    return result.stdout


def staged_additions(repo_path: str = '.') -> List[Addition]:
    """staged 상태의 추가/복사/수정 파일과 그 staged 내용"""
    output = _git(repo_path, 'diff', '--cached', '--name-only', '--diff-filter=ACM', '-z')
    paths = [p for p in output.decode('utf-8', errors='replace').split('\0') if p]
    additions = []
    for path in paths:
        try:
            data = _git(repo_path, 'show', f':{path}')
        except GitError as e:
            logger.warning(f"staged 내용 읽기 실패: {path} - {e}")
            additions.append(Addition(path, error=str(e)))
            continue
        additions.append(Addition(path, data))
    logger.debug(f"staged 파일 {len(additions)}개")
    return additions


def directory_additions(scan_path: str, exclude_dirs: List[str] = None) -> List[Addition]:
    """디렉토리 아래 모든 일반 파일 (symlink 제외)"""
    exclude_dirs = DEFAULT_EXCLUDE_DIRS if exclude_dirs is None else exclude_dirs
    additions = []
    for root, dirs, files in os.walk(scan_path, followlinks=False):
        dirs[:] = sorted(d for d in dirs if d not in exclude_dirs)
        for file in sorted(files):
            fp = Path(root) / file
            if fp.is_symlink():
                continue
            rel_path = fp.relative_to(scan_path).as_posix()
            try:
                additions.append(Addition(rel_path, fp.read_bytes()))
            except OSError as e:
                additions.append(Addition(rel_path, error=str(e)))
    return additions
