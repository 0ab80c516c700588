"""
CommitHound - ignore 파일(.commithoundrc) 관리
false positive를 경로 + checksum + detector 이름으로 억제하고, 새 항목 추가를 제안한다.
"""
import os
import fnmatch
import hashlib
import logging
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

import yaml
from rich.console import Console
from rich.prompt import Confirm

logger = logging.getLogger('commithound')

console = Console()

CONFIRMATION_MESSAGE = "Do you want to add this entry in commithoundrc ?"

# scope별로 항상 무시하는 파일 패턴
SCOPE_PATTERNS = {
    'node': ['yarn.lock', 'package-lock.json', 'node_modules/*'],
    'go': ['makefile', 'go.mod', 'go.sum', 'Gopkg.toml', 'Gopkg.lock', 'glide.yaml', 'glide.lock'],
    'images': ['*.jpeg', '*.jpg', '*.png', '*.tiff', '*.bmp'],
}


class IgnoreConfigError(Exception):
    """ignore 파일 형식 오류"""


def checksum_for(path: str) -> str:
    return hashlib.sha256(path.encode('utf-8')).hexdigest()


@dataclass
class FileIgnoreConfig:
    filename: str
    checksum: str = ''
    ignore_detectors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filename': self.filename,
            'checksum': self.checksum,
            'ignore_detectors': list(self.ignore_detectors),
        }

    def matches(self, path: str) -> bool:
        if self.filename != path and not fnmatch.fnmatch(path, self.filename):
            return False
        return not self.checksum or self.checksum == checksum_for(path)

    def ignores_detector(self, detector_name: str) -> bool:
        return not self.ignore_detectors or detector_name in self.ignore_detectors


class _AppendedDocumentLoader(yaml.SafeLoader):
    """이어 붙인 문서의 중복 키는 리스트를 합친다"""


def _construct_merged_mapping(loader, node):
    loader.flatten_mapping(node)
    merged = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        value = loader.construct_object(value_node, deep=True)
        if isinstance(value, list) and isinstance(merged.get(key), list):
            merged[key] = merged[key] + value
        else:
            merged[key] = value
    return merged


_AppendedDocumentLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_merged_mapping)


def _render_document(entries: List[FileIgnoreConfig]) -> str:
    document = {
        'fileignoreconfig': [e.to_dict() for e in entries],
        'scopeconfig': [],
    }
    return yaml.safe_dump(document, sort_keys=False, default_flow_style=False)


class IgnoreConfig:
    """로드된 ignore 설정. detector는 deny()만 사용한다"""

    def __init__(self, file_ignores: Optional[List[FileIgnoreConfig]] = None,
                 scopes: Optional[List[str]] = None):
        self.file_ignores = file_ignores or []
        self.scopes = scopes or []

    @classmethod
    def from_yaml(cls, text: str) -> 'IgnoreConfig':
        try:
            data = yaml.load(text, Loader=_AppendedDocumentLoader) or {}
        except yaml.YAMLError as e:
            raise IgnoreConfigError(f"ignore 파일 파싱 실패: {e}") from e
        if not isinstance(data, dict):
            raise IgnoreConfigError("ignore 파일의 최상위는 mapping이어야 합니다")

        file_ignores = []
        for entry in data.get('fileignoreconfig') or []:
            if not isinstance(entry, dict) or not entry.get('filename'):
                raise IgnoreConfigError(f"잘못된 fileignoreconfig 항목: {entry!r}")
            detectors = entry.get('ignore_detectors') or []
            if not isinstance(detectors, list):
                raise IgnoreConfigError(f"ignore_detectors는 리스트여야 합니다: {entry['filename']}")
            file_ignores.append(FileIgnoreConfig(
                filename=str(entry['filename']),
                checksum=str(entry.get('checksum') or ''),
                ignore_detectors=[str(d) for d in detectors],
            ))

        scopes = []
        for scope in data.get('scopeconfig') or []:
            name = scope.get('scope') if isinstance(scope, dict) else None
            if name not in SCOPE_PATTERNS:
                raise IgnoreConfigError(f"알 수 없는 scope: {scope!r}")
            scopes.append(name)
        return cls(file_ignores, scopes)

    @classmethod
    def load(cls, path: str) -> 'IgnoreConfig':
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return cls.from_yaml(f.read())
        except FileNotFoundError:
            return cls()

    def _in_scope(self, path: str) -> bool:
        name = path.rsplit('/', 1)[-1]
        for scope in self.scopes:
            for pattern in SCOPE_PATTERNS[scope]:
                if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(name, pattern):
                    return True
        return False

    def deny(self, path: str, detector_name: str) -> bool:
        """detector_name이 path에 대해 제외되어 있는지"""
        if self._in_scope(path):
            return True
        return any(e.matches(path) and e.ignores_detector(detector_name) for e in self.file_ignores)


class ConsolePrompt:
    def confirm(self, message: str) -> bool:
        return Confirm.ask(f"[yellow]{message}[/yellow]", default=False)


@dataclass
class PromptContext:
    interactive: bool
    prompt: Any = field(default_factory=ConsolePrompt)


def _confirm(entry: FileIgnoreConfig, prompt_context: PromptContext) -> bool:
    print(yaml.safe_dump(entry.to_dict(), sort_keys=False, default_flow_style=False))
    return prompt_context.prompt.confirm(CONFIRMATION_MESSAGE)


def _ends_with_newline(path: str) -> bool:
    """없는 파일/빈 파일은 True"""
    try:
        with open(path, 'rb') as f:
            f.seek(0, os.SEEK_END)
            if f.tell() == 0:
                return True
            f.seek(-1, os.SEEK_END)
            return f.read(1) == b'\n'
    except FileNotFoundError:
        return True


def _append_to_ignore_file(entries: List[FileIgnoreConfig], ignore_file: str) -> None:
    if not entries:
        return
    document = _render_document(entries)
    try:
        if not _ends_with_newline(ignore_file):
            document = '\n' + document
        with open(ignore_file, 'a', encoding='utf-8') as f:
            f.write(document)
    except OSError as e:
        logger.error(f"{ignore_file} 쓰기 실패: {e}")
        return
    console.print(f"[green]✓ {len(entries)}개 항목이 '{ignore_file}'에 추가되었습니다.[/green]")


def suggest_ignore_entries(ignore_file: str, paths: List[str], prompt_context: PromptContext) -> None:
    """
    실패한 파일마다 ignore 항목을 만들어 제안한다.
    비대화형이면 문서를 stdout에 출력만 하고, 대화형이면 항목별로 확인받아
    승인된 항목을 하나의 문서로 ignore 파일 끝에 덧붙인다 (기존 내용은 건드리지 않음).
    """
    entries = [FileIgnoreConfig(path, checksum_for(path), []) for path in paths]

    if not prompt_context.interactive:
        console.print(
            "\n[yellow]If you are absolutely sure that you want to ignore the above files from "
            f"commithound detectors, consider pasting the following format in {ignore_file} "
            "file in the project root[/yellow]\n")
        print(_render_document(entries))
        return

    confirmed = [entry for entry in entries if _confirm(entry, prompt_context)]
    _append_to_ignore_file(confirmed, ignore_file)
