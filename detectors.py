"""
CommitHound - 커밋 대상 파일 탐지기
파일 내용(base64/hex/신용카드 번호), 파일명, 파일 크기를 검사해 DetectionResults에 기록한다.
"""
import re
import math
import logging
from typing import List, Dict, Any, Optional
from collections import Counter
from dataclasses import dataclass, field
from concurrent.futures import ThreadPoolExecutor

from detection_results import Category, DetectionResults
from ignore_config import IgnoreConfig

logger = logging.getLogger('commithound')


@dataclass
class Addition:
    """커밋에 추가/수정되는 파일 하나 (경로 + 원본 바이트)"""
    path: str
    data: bytes = b''
    commits: List[str] = field(default_factory=list)
    error: Optional[str] = None


BASE64_CHARS = re.compile(r'[A-Za-z0-9+/]+={0,2}')
HEX_CHARS = re.compile(r'[0-9a-fA-F]+')
_IDENTIFIER_SEGMENT = re.compile(r'[A-Z]?[a-z]+|[A-Z]+|[0-9]+|.')
_WORD_SEGMENT = re.compile(r'[A-Z]?[a-z]{2,}')

# 구분자(공백/하이픈) 포함 13~19자리 숫자
_CARD_CANDIDATE = re.compile(r'(?<![0-9])[0-9](?:[ -]?[0-9]){12,18}(?![0-9])')
CARD_PATTERNS = {
    'visa': re.compile(r'4[0-9]{12}(?:[0-9]{3})?'),
    'mastercard': re.compile(r'(?:5[1-5][0-9]{2}|222[1-9]|22[3-9][0-9]|2[3-6][0-9]{2}|27[01][0-9]|2720)[0-9]{12}'),
    'amex': re.compile(r'3[47][0-9]{13}'),
    'diners': re.compile(r'3(?:0[0-5]|[68][0-9])[0-9]{11}'),
    'discover': re.compile(r'6(?:011|5[0-9]{2})[0-9]{12}'),
    'jcb': re.compile(r'(?:2131|1800|35[0-9]{3})[0-9]{11}'),
}

DEFAULT_FILENAME_PATTERNS = [
    r'^.+_rsa$', r'^.+_dsa$', r'^.+_ed25519$', r'^.+_ecdsa$',
    r'\.pem$', r'\.ppk$', r'\.key$', r'\.pkcs12$', r'\.pfx$', r'\.p12$',
    r'\.asc$', r'\.jks$', r'\.keystore$', r'\.kdb$', r'\.psafe3$',
    r'\.ovpn$', r'\.tblk$', r'^\.?htpasswd$', r'^\.?netrc$',
    r'^\.env$', r'^credentials\.xml$', r'^\.?pgpass$',
]
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
MAX_FRAGMENT_LENGTH = 500


def _fragment(word: str) -> str:
    """메시지에 넣을 필드 (공백 없는 minified 파일 대비 길이 제한)"""
    if len(word) <= MAX_FRAGMENT_LENGTH:
        return word
    return word[:MAX_FRAGMENT_LENGTH] + '...'


def _decode(data: bytes) -> str:
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return data.decode('latin-1')


def is_identifier_like(text: str) -> bool:
    """camelCase 단어 조합(짧은 숫자 허용)처럼 보이는 문자열인지"""
    for segment in _IDENTIFIER_SEGMENT.findall(text):
        if segment.isdigit():
            if len(segment) > 4:
                return False
        elif not _WORD_SEGMENT.fullmatch(segment):
            return False
    return True


def luhn_valid(digits: str) -> bool:
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


class EntropyAnalyzer:
    """엔트로피 기반 분석기"""

    def __init__(self, config: Dict[str, Any]):
        base64_config = config.get('base64', {})
        hex_config = config.get('hex', {})
        self.base64_min_length = base64_config.get('min_length', 20)
        self.base64_threshold = base64_config.get('entropy_threshold', 4.5)
        self.hex_min_length = hex_config.get('min_length', 20)
        self.hex_threshold = hex_config.get('entropy_threshold', 2.7)

    def calculate_entropy(self, text: str) -> float:
        if not text:
            return 0.0
        counter = Counter(text)
        length = len(text)
        entropy = 0.0
        for count in counter.values():
            probability = count / length
            entropy -= probability * math.log2(probability)
        return entropy

    def is_base64_secret(self, candidate: str) -> bool:
        if len(candidate) < self.base64_min_length:
            return False
        if is_identifier_like(candidate.rstrip('=')):
            return False
        return self.calculate_entropy(candidate) > self.base64_threshold

    def is_hex_secret(self, candidate: str) -> bool:
        if len(candidate) < self.hex_min_length or len(candidate) % 2 != 0:
            return False
        # 숫자만으로 된 ID는 hex로 보지 않음
        if candidate.isdigit():
            return False
        return self.calculate_entropy(candidate) > self.hex_threshold


class FileContentDetector:
    """파일 내용에서 인코딩된 시크릿/신용카드 번호를 찾는다"""

    name = Category.FILECONTENT.value

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.entropy_analyzer = EntropyAnalyzer((config or {}).get('filecontent', {}))

    def test(self, additions: List[Addition], ignore_config: IgnoreConfig, results: DetectionResults) -> None:
        for addition in additions:
            if ignore_config.deny(addition.path, self.name):
                logger.debug(f"{addition.path}: {self.name} 검사 제외 (ignore 설정)")
                results.ignore(addition.path, Category.FILECONTENT)
                continue
            if addition.error:
                results.warn(addition.path, Category.FILECONTENT,
                             f"Unable to read file content: {addition.error}", addition.commits)
                continue
            for message in self.check(addition.data):
                results.fail(addition.path, Category.FILECONTENT, message, addition.commits)

    def check(self, data: bytes) -> List[str]:
        """탐지 메시지 목록 반환 (base64 → hex → 신용카드 순)"""
        content = _decode(data)
        words = content.split()
        messages = []
        for word in self._base64_words(words):
            messages.append(f"Expected file to not to contain base64 encoded texts such as: {_fragment(word)}")
        for word in self._hex_words(words):
            messages.append(f"Expected file to not to contain hex encoded texts such as: {_fragment(word)}")
        for number in self._credit_card_numbers(content):
            messages.append(f"Expected file to not to contain credit card numbers such as: {number}")
        return messages

    def _base64_words(self, words: List[str]) -> List[str]:
        return [w for w in words
                if any(self.entropy_analyzer.is_base64_secret(m.group(0)) for m in BASE64_CHARS.finditer(w))]

    def _hex_words(self, words: List[str]) -> List[str]:
        return [w for w in words
                if any(self.entropy_analyzer.is_hex_secret(m.group(0)) for m in HEX_CHARS.finditer(w))]

    def _credit_card_numbers(self, content: str) -> List[str]:
        found = []
        for match in _CARD_CANDIDATE.finditer(content):
            digits = re.sub(r'[ -]', '', match.group(0))
            if any(p.fullmatch(digits) for p in CARD_PATTERNS.values()) and luhn_valid(digits):
                found.append(match.group(0))
        return found


class FileNameDetector:
    """민감한 파일명(개인키, 키스토어 등) 탐지"""

    name = Category.FILENAME.value

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        patterns = (config or {}).get('filename', {}).get('patterns') or DEFAULT_FILENAME_PATTERNS
        self.patterns: List[re.Pattern] = []
        for pattern in patterns:
            try:
                self.patterns.append(re.compile(pattern, re.IGNORECASE))
            except re.error as e:
                logger.warning(f"잘못된 파일명 패턴: {pattern} - {e}")

    def test(self, additions: List[Addition], ignore_config: IgnoreConfig, results: DetectionResults) -> None:
        for addition in additions:
            if ignore_config.deny(addition.path, self.name):
                results.ignore(addition.path, Category.FILENAME)
                continue
            basename = addition.path.replace('\\', '/').rsplit('/', 1)[-1]
            for pattern in self.patterns:
                if pattern.search(basename):
                    results.fail(addition.path, Category.FILENAME,
                                 f'The file name "{addition.path}" failed checks against the pattern {pattern.pattern}',
                                 addition.commits)


class FileSizeDetector:
    """최대 크기를 넘는 파일 탐지"""

    name = Category.FILESIZE.value

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.max_bytes = (config or {}).get('filesize', {}).get('max_bytes', DEFAULT_MAX_FILE_SIZE)

    def test(self, additions: List[Addition], ignore_config: IgnoreConfig, results: DetectionResults) -> None:
        for addition in additions:
            if ignore_config.deny(addition.path, self.name):
                results.ignore(addition.path, Category.FILESIZE)
                continue
            size = len(addition.data)
            if size > self.max_bytes:
                results.fail(addition.path, Category.FILESIZE,
                             f'The file name "{addition.path}" with file size {size} is larger than '
                             f'max limit {self.max_bytes} bytes',
                             addition.commits)


class DetectorChain:
    """모든 detector를 additions에 대해 실행 (선택적으로 파일 단위 병렬)"""

    def __init__(self, detectors: List[Any], parallel: bool = False, max_workers: int = 4):
        self.detectors = detectors
        self.parallel = parallel
        self.max_workers = max_workers

    @classmethod
    def default(cls, config: Optional[Dict[str, Any]] = None, parallel: bool = False) -> 'DetectorChain':
        config = config or {}
        max_workers = config.get('scan', {}).get('max_workers', 4)
        return cls([FileNameDetector(config), FileContentDetector(config), FileSizeDetector(config)],
                   parallel=parallel, max_workers=max_workers)

    def _test_one(self, addition: Addition, ignore_config: IgnoreConfig, results: DetectionResults) -> None:
        for detector in self.detectors:
            detector.test([addition], ignore_config, results)

    def test(self, additions: List[Addition], ignore_config: IgnoreConfig, results: DetectionResults) -> None:
        if not self.parallel:
            for detector in self.detectors:
                detector.test(additions, ignore_config, results)
            return
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._test_one, a, ignore_config, results) for a in additions]
            for future in futures:
                future.result()
