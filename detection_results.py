"""
CommitHound - 탐지 결과 집계
여러 detector가 여러 파일에 대해 호출하는 fail/warn/ignore를 파일 경로별로 모은다.
"""
import io
import logging
import threading
from enum import Enum
from typing import List, Dict, Optional, Tuple
from dataclasses import dataclass, field

from rich.console import Console
from rich.table import Table

from ignore_config import PromptContext, suggest_ignore_entries

logger = logging.getLogger('commithound')

console = Console()

# 리포트 테이블에서 메시지를 줄바꿈하는 위치
MESSAGE_WRAP_WIDTH = 150


class Category(str, Enum):
    """실패 카운터가 있는 탐지 카테고리"""
    FILECONTENT = 'filecontent'
    FILENAME = 'filename'
    FILESIZE = 'filesize'


@dataclass
class Detail:
    category: Category
    message: str
    commits: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {'type': self.category.value, 'message': self.message, 'commits': list(self.commits)}


@dataclass
class FileResults:
    """한 파일 경로에 대한 failure / warning / ignore 목록"""
    filename: str
    failures: List[Detail] = field(default_factory=list)
    warnings: List[Detail] = field(default_factory=list)
    ignores: List[Detail] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'filename': self.filename,
            'failure_list': [d.to_dict() for d in self.failures],
            'warning_list': [d.to_dict() for d in self.warnings],
            'ignore_list': [d.to_dict() for d in self.ignores],
        }


@dataclass
class ResultsSummary:
    """호출 횟수 카운터 (고유 finding 수가 아님)"""
    filecontent: int = 0
    filename: int = 0
    filesize: int = 0
    warnings: int = 0
    ignores: int = 0

    def to_dict(self) -> Dict:
        return {'types': {
            'filecontent': self.filecontent, 'filesize': self.filesize,
            'filename': self.filename, 'warnings': self.warnings,
            'ignores': self.ignores,
        }}


def _add_detail(details: List[Detail], category: Category, message: str, commits: List[str]) -> None:
    for detail in details:
        if detail.category == category and detail.message == message:
            detail.commits.extend(commits)
            return
    details.append(Detail(category, message, list(commits)))


def _wrap_message(message: str) -> str:
    if len(message) > MESSAGE_WRAP_WIDTH:
        return message[:MESSAGE_WRAP_WIDTH] + '\n' + message[MESSAGE_WRAP_WIDTH:]
    return message


def _render_text(table: Table) -> str:
    buffer = io.StringIO()
    Console(file=buffer, width=console.width, force_terminal=False, color_system=None).print(table)
    return buffer.getvalue()


class DetectionResults:
    """
    한 번의 탐지 실행 동안 모든 detector가 공유하는 collecting parameter.
    결과는 파일 경로별로 묶이며, fail/warn/ignore만이 상태를 바꾼다.
    병렬 실행 시에도 안전하도록 세 연산은 lock으로 직렬화한다.
    """

    def __init__(self):
        self.summary = ResultsSummary()
        self.results: List[FileResults] = []
        self._lock = threading.Lock()

    def _find(self, filename: str) -> Optional[FileResults]:
        for file_results in self.results:
            if file_results.filename == filename:
                return file_results
        return None

    def _find_or_create(self, filename: str) -> FileResults:
        file_results = self._find(filename)
        if file_results is None:
            file_results = FileResults(filename)
            self.results.append(file_results)
        return file_results

    def fail(self, filename: str, category: Category, message: str, commits: List[str] = ()) -> None:
        """
        파일을 실패로 표시. 같은 (category, message)가 이미 있으면 commit만 이어 붙인다.
        """
        category = Category(category)
        with self._lock:
            _add_detail(self._find_or_create(filename).failures, category, message, commits)
            self._update_summary(category)

    def warn(self, filename: str, category: Category, message: str, commits: List[str] = ()) -> None:
        category = Category(category)
        with self._lock:
            _add_detail(self._find_or_create(filename).warnings, category, message, commits)
            self.summary.warnings += 1

    def ignore(self, filename: str, category: Category) -> None:
        """ignore 설정으로 건너뛴 detector를 기록. 카테고리당 하나만 남지만 카운터는 매번 증가"""
        category = Category(category)
        with self._lock:
            file_results = self._find_or_create(filename)
            if not any(d.category == category for d in file_results.ignores):
                file_results.ignores.append(Detail(category, ''))
            self.summary.ignores += 1

    def _update_summary(self, category: Category) -> None:
        if category is Category.FILECONTENT:
            self.summary.filecontent += 1
        elif category is Category.FILENAME:
            self.summary.filename += 1
        elif category is Category.FILESIZE:
            self.summary.filesize += 1
        else:
            raise ValueError(f"알 수 없는 카테고리: {category}")

    # ── 판정 ───────────────────────────────────────────────────

    def has_failures(self) -> bool:
        s = self.summary
        return s.filecontent > 0 or s.filename > 0 or s.filesize > 0

    def has_warnings(self) -> bool:
        return self.summary.warnings > 0

    def has_ignores(self) -> bool:
        return self.summary.ignores > 0

    def has_detection_messages(self) -> bool:
        return self.has_warnings() or self.has_failures() or self.has_ignores()

    def successful(self) -> bool:
        return not self.has_failures()

    def get_failures(self, filename: str) -> List[Detail]:
        file_results = self._find(filename)
        if file_results is None:
            return []
        return file_results.failures

    # ── 리포트 ─────────────────────────────────────────────────

    def report_file_failures(self, filename: str) -> List[Tuple[str, str]]:
        file_results = self._find(filename)
        if file_results is None:
            return []
        return [(filename, _wrap_message(d.message)) for d in file_results.failures]

    def report_file_warnings(self, filename: str) -> List[Tuple[str, str]]:
        file_results = self._find(filename)
        if file_results is None:
            return []
        return [(filename, _wrap_message(d.message)) for d in file_results.warnings]

    def report_warnings(self) -> str:
        """경고 테이블 출력"""
        if not self.has_warnings():
            return ""
        table = Table(show_lines=True)
        table.add_column("File", style="cyan")
        table.add_column("Warnings")
        for file_results in self.results:
            for row in self.report_file_warnings(file_results.filename):
                table.add_row(*row)

        console.print("\n[bold red]CommitHound Warnings:[/bold red]")
        console.print(table)
        console.print("\n[yellow]Please review the above file(s) to make sure that no sensitive content is being pushed[/yellow]\n")
        return _render_text(table)

    def report(self, ignore_file: str, prompt_context: PromptContext) -> str:
        """
        실패/ignore가 있는 파일을 테이블로 출력하고, 실패가 있으면 ignore 항목 추가를 제안한다.
        실패가 없으면 아무것도 출력하지 않고 빈 문자열을 반환한다.
        """
        if not self.has_failures():
            return ""

        paths = []
        table = Table(show_lines=True)
        table.add_column("File", style="cyan")
        table.add_column("Errors")
        for file_results in self.results:
            if file_results.failures or file_results.ignores:
                if file_results.filename not in paths:
                    paths.append(file_results.filename)
                for row in self.report_file_failures(file_results.filename):
                    table.add_row(*row)

        console.print("\n[bold red]CommitHound Report:[/bold red]")
        console.print(table)
        rendered = _render_text(table)
        suggest_ignore_entries(ignore_file, paths, prompt_context)
        return rendered

    def to_dict(self) -> Dict:
        return {
            'summary': self.summary.to_dict(),
            'results': [r.to_dict() for r in self.results],
        }
