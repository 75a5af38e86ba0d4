# histomed/main.py
from __future__ import annotations

import argparse
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from histomed.app_state import AppState
from histomed.config import Settings, configure_logging
from histomed.domain.enums import QuizPhase
from histomed.domain.models import QuizQuestion
from histomed.domain.topics import TOPICS, get_topic, topics_by_category
from histomed.errors import HistoMedError
from histomed.imaging.normalizer import normalize_image, validate_upload

logger = logging.getLogger(__name__)

LETTERS = "ABCD"


def _print_question(q: QuizQuestion, idx: int, total: int) -> None:
    print("\n" + "=" * 80)
    print(f"Questão {idx + 1}/{total}")
    print("-" * 80)
    print(q.question)
    print("-" * 80)
    for letter, opt in zip(LETTERS, q.options):
        print(f"{letter}) {opt}")
    print("=" * 80)


def _read_answer() -> int:
    while True:
        s = input("Resposta (A/B/C/D, Q=sair): ").strip().upper()
        if s in ("Q", "QUIT", "SAIR"):
            raise KeyboardInterrupt()
        if len(s) == 1 and s in LETTERS:
            return LETTERS.index(s)
        print("Escolha A, B, C ou D.")


def cmd_topics(app: AppState, args: argparse.Namespace) -> int:
    for category, topics in topics_by_category().items():
        print(f"\n{category.value}")
        for t in topics:
            print(f"  {t.id:<18} {t.title}")
    return 0


def cmd_library(app: AppState, args: argparse.Namespace) -> int:
    topic = get_topic(args.topic)
    if topic is None:
        print(f"Tópico desconhecido: {args.topic}")
        return 2
    print(app.library.content_for(topic))
    return 0


def cmd_quiz(app: AppState, args: argparse.Namespace) -> int:
    topic = get_topic(args.topic)
    if topic is None:
        print(f"Tópico desconhecido: {args.topic}")
        return 2

    engine, session = app.quiz_engine, app.quiz_session
    print(f"Gerando questões sobre {topic.title}...")
    if not engine.start_quiz(session, topic):
        print(session.error_message)
        return 1

    try:
        while session.phase == QuizPhase.ACTIVE:
            q = session.current_question
            _print_question(q, session.current_index, len(session.questions))
            engine.answer(session, _read_answer())

            chosen = session.answers[session.current_index]
            icon = "✅" if chosen == q.correct_answer else "❌"
            print(f"\n{icon} Correta: {LETTERS[q.correct_answer]}) {q.options[q.correct_answer]}")
            print(f"📖 {q.explanation}")
            engine.advance(session)
    except (KeyboardInterrupt, EOFError):
        print("\nSaindo.")
        engine.reset(session)
        return 0

    result = engine.result(session)
    print(f"\nResultado: {result.score}/{result.total}")
    print(engine.result_message(session))
    engine.reset(session)
    return 0


def cmd_analyze(app: AppState, args: argparse.Namespace) -> int:
    path = Path(args.image)
    try:
        validate_upload(path.name, mimetypes.guess_type(path.name)[0])
        data_url = normalize_image(path.read_bytes())
    except (HistoMedError, OSError) as e:
        print(f"ERRO: {e}")
        return 2

    analysis = app.fetcher.analyze_image(data_url)
    if analysis is None:
        print("Não foi possível analisar a imagem.")
        return 1
    print(f"Tecido: {analysis.tissue_type}")
    print(f"Diagnóstico: {analysis.diagnosis}")
    print("Estruturas:")
    for f in analysis.features:
        print(f"  - {f}")
    print(f"\n{analysis.description}")
    return 0


def cmd_export_logs(app: AppState, args: argparse.Namespace) -> int:
    print(app.log_book.export_csv(args.path))
    return 0


def cmd_gui(app: AppState, args: argparse.Namespace) -> int:
    from histomed.gui_main import run_gui

    run_gui(app)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="histomed", description="HistoMed Atlas")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("gui", help="abre a interface gráfica").set_defaults(func=cmd_gui)
    sub.add_parser("topics", help="lista os tópicos").set_defaults(func=cmd_topics)

    p = sub.add_parser("library", help="resumo de um tópico")
    p.add_argument("topic", choices=[t.id for t in TOPICS])
    p.set_defaults(func=cmd_library)

    p = sub.add_parser("quiz", help="quiz interativo no terminal")
    p.add_argument("topic", choices=[t.id for t in TOPICS])
    p.set_defaults(func=cmd_quiz)

    p = sub.add_parser("analyze", help="microscópio virtual")
    p.add_argument("image")
    p.set_defaults(func=cmd_analyze)

    p = sub.add_parser("export-logs", help="exporta o histórico de acessos em CSV")
    p.add_argument("path", nargs="?")
    p.set_defaults(func=cmd_export_logs)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    app = AppState.from_settings(settings)
    app.startup()

    func = getattr(args, "func", cmd_gui)
    return func(app, args)


if __name__ == "__main__":
    sys.exit(main())
