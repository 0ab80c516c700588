"""commithound CLI 진입점 - 패키지의 config.yaml 경로를 자동 설정"""
import os
import sys


def main():
    pkg_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(pkg_dir, 'config.yaml')

    # --config가 명시되지 않았으면 패키지 내부 yaml 사용
    if os.path.exists(config_path) and '--config' not in sys.argv:
        sys.argv.extend(['--config', config_path])

    from main import main as _main
    _main()


if __name__ == "__main__":
    main()
