#!/usr/bin/env python3
"""
CommitHound - Main
커밋 전 시크릿 탐지 CLI: staged 변경분 또는 디렉토리 검사, ignore 항목 제안
"""
import os
import sys
import signal
import logging
import argparse
from pathlib import Path
from typing import Dict

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from detection_results import DetectionResults
from detectors import DetectorChain
from gitrepo import GitError, staged_additions, directory_additions
from ignore_config import IgnoreConfig, IgnoreConfigError, PromptContext, ConsolePrompt
from reporter import export_json

logger = logging.getLogger('commithound')

console = Console()

VERSION = "1.0.0"

# Exit codes
EXIT_CLEAN = 0
EXIT_FINDINGS = 1
EXIT_ERROR = 2


def _load_yaml(path: str) -> Dict:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        return {}
    except (yaml.YAMLError, IOError) as e:
        logger.error(f"설정 파일 로드 실패: {e}")
        return {}


def _merge_config(config: Dict, local: Dict) -> Dict:
    """로컬 설정을 병합 (리스트는 추가, dict는 재귀 병합, 값은 덮어쓰기)"""
    for key, value in local.items():
        if isinstance(value, list) and isinstance(config.get(key), list):
            config[key] = config[key] + value
        elif isinstance(value, dict) and isinstance(config.get(key), dict):
            _merge_config(config[key], value)
        else:
            config[key] = value
    return config


def _validate_config(config: Dict) -> Dict:
    """설정값 검증"""
    max_bytes = config.get('filesize', {}).get('max_bytes', 1048576)
    if not isinstance(max_bytes, int) or max_bytes <= 0:
        logger.warning(f"잘못된 filesize.max_bytes: {max_bytes} → 기본값 1MB 사용")
        config.setdefault('filesize', {})['max_bytes'] = 1048576

    workers = config.get('scan', {}).get('max_workers', 4)
    if not isinstance(workers, int) or workers <= 0:
        logger.warning(f"잘못된 max_workers: {workers} → 기본값 4 사용")
        config.setdefault('scan', {})['max_workers'] = 4

    for kind, default in (('base64', 4.5), ('hex', 2.7)):
        section = config.setdefault('filecontent', {}).setdefault(kind, {})
        threshold = section.get('entropy_threshold', default)
        if not isinstance(threshold, (int, float)) or threshold <= 0 or threshold > 8:
            logger.warning(f"잘못된 {kind} entropy_threshold: {threshold} → 기본값 {default} 사용")
            section['entropy_threshold'] = default
    return config


def load_config(config_path: str) -> Dict:
    config = _load_yaml(config_path)
    local_config = _load_yaml(config_path.replace('.yaml', '.local.yaml'))
    if local_config:
        _merge_config(config, local_config)
    return _validate_config(config)


def _find_data_file(filename: str) -> str:
    """config.yaml 경로 탐색"""
    candidates = [
        Path(__file__).parent / 'commithound' / filename,
        Path(sys.prefix) / 'commithound' / filename,
        Path('.') / filename,
    ]
    for p in candidates:
        if p.exists():
            return str(p)
    return filename


def display_summary(results: DetectionResults):
    s = results.summary
    summary_table = Table(show_header=False, border_style="bright_green", padding=(0, 2), box=None)
    summary_table.add_column("항목", style="bold bright_cyan", width=20)
    summary_table.add_column("값", style="bold bright_yellow", justify="right")
    summary_table.add_row("📂 기록된 파일", f"{len(results.results):,}개")
    summary_table.add_row("🔍 파일 내용", f"{s.filecontent:,}건")
    summary_table.add_row("📛 파일명", f"{s.filename:,}건")
    summary_table.add_row("📦 파일 크기", f"{s.filesize:,}건")
    summary_table.add_row("⚠️  경고", f"{s.warnings:,}건")
    summary_table.add_row("🔒 ignore", f"{s.ignores:,}건")
    console.print(Panel(summary_table, title="[bold bright_green]📊 검사 요약[/bold bright_green]",
                        border_style="bright_green", padding=(1, 2)))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='commithound',
        description='🐕 CommitHound - 커밋 전 시크릿 탐지 도구',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
사용 예시:
  commithound                               # staged 변경분 검사 (pre-commit)
  commithound --interactive                 # 실패 파일을 ignore 파일에 추가할지 확인
  commithound --path ./src --parallel       # 디렉토리 전체 병렬 검사
  commithound --format json -o report.json  # JSON 리포트
"""
    )
    parser.add_argument('--version', '-V', action='version', version=f'commithound {VERSION}')
    parser.add_argument('--path', '-p', help='staged 변경분 대신 검사할 디렉토리')
    parser.add_argument('--ignore-file', help='ignore 파일 경로 (기본: 설정의 ignore_file)')
    parser.add_argument('--interactive', '-i', action='store_true', help='ignore 항목 추가를 항목별로 확인')
    parser.add_argument('--format', '-f', choices=['console', 'json'], default='console', help='출력 형식 (기본: console)')
    parser.add_argument('--output', '-o', help='JSON 결과 저장 파일 경로')
    parser.add_argument('--parallel', action='store_true', help='파일 단위 병렬 처리')
    parser.add_argument('--config', help='설정 파일 경로')
    parser.add_argument('--verbose', '-v', action='store_true', help='상세 출력')
    return parser


def run(args) -> int:
    config = load_config(args.config or _find_data_file('config.yaml'))
    ignore_file = args.ignore_file or config.get('ignore_file', '.commithoundrc')

    try:
        ignore_config = IgnoreConfig.load(ignore_file)
    except IgnoreConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        return EXIT_ERROR

    try:
        if args.path:
            scan_path = os.path.realpath(args.path)
            if not os.path.isdir(scan_path):
                console.print(f"[red]❌ 경로가 존재하지 않습니다: {scan_path}[/red]")
                return EXIT_ERROR
            additions = directory_additions(scan_path, config.get('scan', {}).get('exclude_dirs'))
        else:
            additions = staged_additions('.')
    except GitError as e:
        console.print(f"[red]❌ git 오류: {e}[/red]")
        return EXIT_ERROR

    results = DetectionResults()
    DetectorChain.default(config, parallel=args.parallel).test(additions, ignore_config, results)

    if args.format == 'json':
        output = export_json(results, VERSION, args.output)
        if not args.output:
            print(output)
    else:
        results.report_warnings()
        results.report(ignore_file, PromptContext(args.interactive, ConsolePrompt()))
        if args.verbose:
            display_summary(results)

    if results.successful():
        if args.format == 'console':
            console.print("[green]✓ 시크릿으로 의심되는 내용이 발견되지 않았습니다.[/green]")
        return EXIT_CLEAN
    return EXIT_FINDINGS


def handle_signal(signum, frame):
    # 중단은 실패로 종료
    console.print("\n[yellow]⚠️  신호를 받아 종료합니다.[/yellow]")
    sys.exit(EXIT_ERROR)


def main():
    parser = build_parser()
    args = parser.parse_args()

    # 로깅 설정
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S'
    )

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    sys.exit(run(args))


if __name__ == "__main__":
    main()
