# histomed/gui_main.py
import io
import logging
import mimetypes
import threading
import textwrap
from pathlib import Path
from typing import Callable, Dict, Optional

import customtkinter as ctk
from tkinter import filedialog, messagebox
from PIL import Image, ImageTk

from histomed import messages
from histomed.app_state import AppState
from histomed.config import Settings, configure_logging
from histomed.domain.enums import AppTab, QuizPhase
from histomed.domain.models import MindMapItem, Topic
from histomed.domain.topics import topics_by_category
from histomed.errors import HistoMedError, PermissionDeniedError, ProcessingError, ValidationError
from histomed.imaging.normalizer import normalize_image, split_data_url, validate_upload

logger = logging.getLogger(__name__)

ctk.set_appearance_mode("Light")
ctk.set_default_color_theme("blue")

MEDICAL = "#0284c7"
MEDICAL_DARK = "#0369a1"
SLATE = "#f1f5f9"
CORRECT = "#16a34a"
WRONG = "#dc2626"
NEUTRAL = "#e2e8f0"

POLL_INTERVAL_MS = 2000
IMAGE_FILETYPES = [("Imagens", "*.png *.jpg *.jpeg *.webp *.gif")]

ZOOM_STEP = 1.15
ZOOM_MIN, ZOOM_MAX = 0.1, 5.0
VIEWER_SIZE = (900, 900)

TAB_LABELS = {
    AppTab.LIBRARY: "📚 Biblioteca",
    AppTab.QUIZ: "🎓 Quiz",
    AppTab.MICROSCOPE: "🔬 Microscópio",
    AppTab.MINDMAP: "🧠 Mapas Mentais",
    AppTab.STUDENT_LOGS: "👥 Alunos",
}


def image_from_data_url(url: str) -> Image.Image:
    _, data = split_data_url(url)
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def fit_size(width: int, height: int, max_w: int, max_h: int):
    return scaled_size(width, height, min(max_w / width, max_h / height, 1.0))


def scaled_size(width: int, height: int, scale: float):
    return max(1, int(width * scale)), max(1, int(height * scale))


class ImagePopup(ctk.CTkToplevel):
    """Janela da lâmina ou do mapa: abre ajustada à janela, zoom pela roda ou +/-, arraste com o mouse."""

    def __init__(self, image: Image.Image, title: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.title(title)
        self.geometry("{}x{}".format(*VIEWER_SIZE))
        self.focus_force()

        self.image = image
        fitted_w, _ = fit_size(image.width, image.height, VIEWER_SIZE[0] - 40, VIEWER_SIZE[1] - 40)
        self.fit_scale = fitted_w / image.width
        self.scale = self.fit_scale

        self.canvas = ctk.CTkCanvas(self, bg="#101010", highlightthickness=0)
        self.canvas.pack(fill="both", expand=True)
        self._photo = None
        self._item = self.canvas.create_image(0, 0, anchor="nw")

        self.canvas.bind("<ButtonPress-1>", lambda e: self.canvas.scan_mark(e.x, e.y))
        self.canvas.bind("<B1-Motion>", lambda e: self.canvas.scan_dragto(e.x, e.y, gain=1))
        self.canvas.bind("<MouseWheel>", lambda e: self.zoom_by(ZOOM_STEP if e.delta > 0 else 1 / ZOOM_STEP))
        # X11 entrega a roda como botões 4/5
        self.canvas.bind("<Button-4>", lambda e: self.zoom_by(ZOOM_STEP))
        self.canvas.bind("<Button-5>", lambda e: self.zoom_by(1 / ZOOM_STEP))
        self.bind("<plus>", lambda e: self.zoom_by(ZOOM_STEP))
        self.bind("<minus>", lambda e: self.zoom_by(1 / ZOOM_STEP))
        self.bind("0", lambda e: self.reset_zoom())
        self._render()

    def zoom_by(self, factor: float):
        scale = self.scale * factor
        if ZOOM_MIN <= scale <= ZOOM_MAX:
            self.scale = scale
            self._render()

    def reset_zoom(self):
        self.scale = self.fit_scale
        self._render()

    def _render(self):
        size = scaled_size(self.image.width, self.image.height, self.scale)
        shown = self.image if size == self.image.size else self.image.resize(size, Image.Resampling.LANCZOS)
        self._photo = ImageTk.PhotoImage(shown)
        self.canvas.itemconfig(self._item, image=self._photo)
        self.canvas.config(scrollregion=(0, 0, size[0], size[1]))


class HistoMedApp(ctk.CTk):
    def __init__(self, app: AppState):
        super().__init__()
        self.app = app
        self.title("HistoMed Atlas")
        self.geometry("1280x860")
        self.minsize(1000, 700)

        self.root_frame: Optional[ctk.CTkFrame] = None
        self.content: Optional[ctk.CTkFrame] = None
        self.tab_buttons: Dict[AppTab, ctk.CTkButton] = {}

        # login
        self.is_student = True
        self.student_mode = "signup"

        # microscópio
        self.micro_image_url: Optional[str] = None
        self.micro_analysis = None
        self._micro_request = 0

        self._library_request = 0
        self._gallery_request = 0

        self.protocol("WM_DELETE_WINDOW", self.on_close)

        if self.app.startup():
            self.show_main()
        else:
            self.show_login()
        self.after(POLL_INTERVAL_MS, self._poll_storage)

    # =========================================================
    # utilidades
    # =========================================================
    def _reset_root(self) -> ctk.CTkFrame:
        if self.root_frame is not None:
            self.root_frame.destroy()
        self.root_frame = ctk.CTkFrame(self, fg_color=SLATE, corner_radius=0)
        self.root_frame.pack(fill="both", expand=True)
        return self.root_frame

    def _clear_content(self):
        for w in self.content.winfo_children():
            w.destroy()

    def _run_in_thread(self, work: Callable, done: Callable):
        """Executa `work` fora da thread da interface e entrega o resultado com after(0)."""
        def runner():
            try:
                result = work()
            except Exception as e:
                logger.exception("[GUI] Falha em tarefa de fundo")
                result = e
            self.after(0, lambda: done(result))

        threading.Thread(target=runner, daemon=True).start()

    def _poll_storage(self):
        try:
            self.app.store.poll_changes()
        finally:
            self.after(POLL_INTERVAL_MS, self._poll_storage)

    def _set_text(self, box: ctk.CTkTextbox, content: str):
        box.configure(state="normal")
        box.delete("0.0", "end")
        box.insert("0.0", content)
        box.configure(state="disabled")

    # =========================================================
    # LOGIN
    # =========================================================
    def show_login(self):
        root = self._reset_root()
        card = ctk.CTkFrame(root, fg_color="white", corner_radius=16, width=420)
        card.place(relx=0.5, rely=0.5, anchor="center")

        ctk.CTkLabel(card, text="HistoMed Atlas", font=("Helvetica", 30, "bold"),
                     text_color=MEDICAL).pack(padx=40, pady=(30, 4))
        ctk.CTkLabel(card, text="Atlas interativo de Histologia", font=("Helvetica", 13),
                     text_color="#64748b").pack(pady=(0, 20))

        self.role_switch = ctk.CTkSegmentedButton(card, values=["Aluno", "Admin"], command=self._on_role_switch)
        self.role_switch.set("Aluno" if self.is_student else "Admin")
        self.role_switch.pack(fill="x", padx=40, pady=(0, 15))

        self.login_form = ctk.CTkFrame(card, fg_color="transparent")
        self.login_form.pack(fill="x", padx=40)

        self.login_alert = ctk.CTkLabel(card, text="", wraplength=340, justify="left")
        self.login_alert.pack(fill="x", padx=40, pady=(10, 0))

        self.login_progress = ctk.CTkProgressBar(card, mode="indeterminate", progress_color=MEDICAL)

        self._build_login_form()

    def _on_role_switch(self, value: str):
        self.is_student = value == "Aluno"
        if self.is_student:
            self.student_mode = "signup"
        self._set_alert("")
        self._build_login_form()

    def _build_login_form(self):
        for w in self.login_form.winfo_children():
            w.destroy()
        form = self.login_form

        if self.is_student:
            self.entry_name = None
            if self.student_mode == "signup":
                self.entry_name = ctk.CTkEntry(form, placeholder_text="Nome completo", height=40)
                self.entry_name.pack(fill="x", pady=5)
            self.entry_email = ctk.CTkEntry(form, placeholder_text="E-mail", height=40)
            self.entry_email.pack(fill="x", pady=5)
            self.entry_password = ctk.CTkEntry(form, placeholder_text="Senha", show="•", height=40)
            self.entry_password.pack(fill="x", pady=5)
            self.entry_password.bind("<Return>", lambda e: self.submit_login())

            label = "Criar conta" if self.student_mode == "signup" else "Entrar"
            self.btn_login = ctk.CTkButton(form, text=f"{label} ➤", height=44, fg_color=MEDICAL,
                                           hover_color=MEDICAL_DARK, command=self.submit_login)
            self.btn_login.pack(fill="x", pady=(15, 5))

            toggle = "Já tenho conta? Entrar" if self.student_mode == "signup" else "Não tenho conta? Cadastrar"
            ctk.CTkButton(form, text=toggle, fg_color="transparent", text_color=MEDICAL, hover=False,
                          command=self._toggle_student_mode).pack(pady=(0, 20))
        else:
            self.entry_admin = ctk.CTkEntry(form, placeholder_text="Senha do administrador", show="•", height=40)
            self.entry_admin.pack(fill="x", pady=5)
            self.entry_admin.bind("<Return>", lambda e: self.submit_login())
            self.btn_login = ctk.CTkButton(form, text="Entrar como Admin ➤", height=44, fg_color="#334155",
                                           command=self.submit_login)
            self.btn_login.pack(fill="x", pady=(15, 20))

    def _toggle_student_mode(self):
        self.student_mode = "login" if self.student_mode == "signup" else "signup"
        self._set_alert("")
        self._build_login_form()

    def _set_alert(self, text: str, error: bool = False):
        self.login_alert.configure(text=text, text_color=WRONG if error else CORRECT)

    def submit_login(self):
        self._set_alert("")
        auth = self.app.auth

        if not self.is_student:
            self._finish_login(auth.admin_login(self.entry_admin.get()))
            return

        name = self.entry_name.get() if self.entry_name is not None else ""
        email, password = self.entry_email.get(), self.entry_password.get()
        if self.student_mode == "signup":
            work = lambda: auth.sign_up(name, email, password)
        else:
            work = lambda: auth.sign_in(email, password, name)

        self.btn_login.configure(state="disabled")
        self.login_progress.pack(fill="x", padx=40, pady=(0, 20))
        self.login_progress.start()
        self._run_in_thread(work, self._finish_login)

    def _finish_login(self, outcome):
        if self.login_progress.winfo_exists():
            self.login_progress.stop()
            self.login_progress.pack_forget()
        if isinstance(outcome, Exception):
            self.btn_login.configure(state="normal")
            self._set_alert(messages.LOGIN_FAILED, error=True)
            return

        self.app.apply_auth(outcome)
        if outcome.ok:
            self.show_main()
            return

        if outcome.switch_to_login:
            self.student_mode = "login"
            self._build_login_form()
        else:
            self.btn_login.configure(state="normal")
        if outcome.error:
            self._set_alert(outcome.error, error=True)
        else:
            self._set_alert(outcome.message)

    # =========================================================
    # LAYOUT PRINCIPAL
    # =========================================================
    def show_main(self):
        root = self._reset_root()
        user = self.app.user
        root.grid_columnconfigure(1, weight=1)
        root.grid_rowconfigure(1, weight=1)

        header = ctk.CTkFrame(root, height=56, corner_radius=0, fg_color="white")
        header.grid(row=0, column=0, columnspan=2, sticky="ew")
        ctk.CTkLabel(header, text="HistoMed Atlas", font=("Helvetica", 20, "bold"),
                     text_color=MEDICAL).pack(side="left", padx=20, pady=10)
        ctk.CTkButton(header, text="Sair", width=80, fg_color="#334155", command=self.logout).pack(
            side="right", padx=(5, 20))
        role = "Administrador" if user.is_admin else "Aluno"
        ctk.CTkLabel(header, text=f"👤 {user.name} · {role}", font=("Helvetica", 13),
                     text_color="#334155").pack(side="right", padx=10)

        sidebar = ctk.CTkFrame(root, width=220, corner_radius=0, fg_color="white")
        sidebar.grid(row=1, column=0, sticky="ns")
        self.tab_buttons = {}
        for tab in AppTab:
            if not self.app.can_open(tab):
                continue
            btn = ctk.CTkButton(sidebar, text=TAB_LABELS[tab], anchor="w", height=42,
                                command=lambda t=tab: self.open_tab(t))
            btn.pack(fill="x", padx=12, pady=4)
            self.tab_buttons[tab] = btn

        self.content = ctk.CTkFrame(root, fg_color=SLATE, corner_radius=0)
        self.content.grid(row=1, column=1, sticky="nsew", padx=20, pady=20)
        self.open_tab(self.app.active_tab)

    def open_tab(self, tab: AppTab):
        if not self.app.can_open(tab):
            tab = AppTab.LIBRARY
        self.app.active_tab = tab
        for t, btn in self.tab_buttons.items():
            btn.configure(fg_color=MEDICAL if t == tab else "transparent",
                          text_color="white" if t == tab else "#475569")
        self._clear_content()
        {
            AppTab.LIBRARY: self.build_library,
            AppTab.QUIZ: self.build_quiz,
            AppTab.MICROSCOPE: self.build_microscope,
            AppTab.MINDMAP: self.build_mindmaps,
            AppTab.STUDENT_LOGS: self.build_student_logs,
        }[tab]()

    def logout(self):
        self.app.logout()
        self._micro_request += 1
        self.micro_image_url = None
        self.micro_analysis = None
        self.is_student = True
        self.student_mode = "signup"
        self.show_login()

    def _topic_list(self, parent, on_select: Callable[[Topic], None]) -> ctk.CTkScrollableFrame:
        frame = ctk.CTkScrollableFrame(parent, fg_color="white", width=280)
        for category, topics in topics_by_category().items():
            ctk.CTkLabel(frame, text=category.value.upper(), font=("Helvetica", 12, "bold"),
                         text_color="#94a3b8").pack(anchor="w", padx=8, pady=(12, 4))
            for t in topics:
                ctk.CTkButton(frame, text=t.title, anchor="w", fg_color="transparent", text_color="#334155",
                              hover_color="#e0f2fe", command=lambda x=t: on_select(x)).pack(fill="x", padx=4, pady=1)
        return frame

    # =========================================================
    # BIBLIOTECA
    # =========================================================
    def build_library(self):
        self.content.grid_columnconfigure(1, weight=1)
        self.content.grid_rowconfigure(0, weight=1)

        self._topic_list(self.content, self.select_library_topic).grid(row=0, column=0, sticky="ns", padx=(0, 15))

        right = ctk.CTkFrame(self.content, fg_color="white", corner_radius=12)
        right.grid(row=0, column=1, sticky="nsew")
        self.library_title = ctk.CTkLabel(right, text="Selecione um tópico no sumário",
                                          font=("Helvetica", 20, "bold"), text_color="#0f172a")
        self.library_title.pack(anchor="w", padx=20, pady=(20, 5))
        self.library_progress = ctk.CTkProgressBar(right, mode="indeterminate", progress_color=MEDICAL)
        self.library_text = ctk.CTkTextbox(right, font=("Helvetica", 15), wrap="word", fg_color="white")
        self.library_text.pack(fill="both", expand=True, padx=20, pady=(5, 20))
        self._set_text(self.library_text, "Baseado em Junqueira & Carneiro, Histologia Básica.")

    def select_library_topic(self, topic: Topic):
        self.library_title.configure(text=topic.title)
        cached = self.app.library.cached(topic)
        if cached is not None:
            self._set_text(self.library_text, cached)
            return

        self._library_request += 1
        token = self._library_request
        self._set_text(self.library_text, "Gerando resumo...")
        self.library_progress.pack(fill="x", padx=20, before=self.library_text)
        self.library_progress.start()
        self._run_in_thread(lambda: self.app.library.content_for(topic),
                            lambda text: self._show_library(token, text))

    def _show_library(self, token: int, text):
        # só a última seleção é exibida
        if token != self._library_request or not self.library_text.winfo_exists():
            return
        self.library_progress.stop()
        self.library_progress.pack_forget()
        self._set_text(self.library_text, messages.LIBRARY_UNAVAILABLE if isinstance(text, Exception) else text)

    # =========================================================
    # QUIZ
    # =========================================================
    def build_quiz(self):
        self.quiz_frame = ctk.CTkFrame(self.content, fg_color="transparent")
        self.quiz_frame.pack(fill="both", expand=True)
        self.render_quiz()

    def render_quiz(self):
        if not self.quiz_frame.winfo_exists():
            return
        for w in self.quiz_frame.winfo_children():
            w.destroy()
        phase = self.app.quiz_session.phase
        {
            QuizPhase.SELECTION: self._quiz_selection,
            QuizPhase.LOADING: self._quiz_loading,
            QuizPhase.ACTIVE: self._quiz_active,
            QuizPhase.RESULT: self._quiz_result,
        }[phase]()

    def _quiz_selection(self):
        session = self.app.quiz_session
        ctk.CTkLabel(self.quiz_frame, text="Escolha um tema para o Quiz", font=("Helvetica", 22, "bold"),
                     text_color="#0f172a").pack(pady=(10, 5))
        ctk.CTkLabel(self.quiz_frame, text="10 questões geradas por IA a partir do Junqueira & Carneiro",
                     text_color="#64748b").pack(pady=(0, 10))
        if session.error_message:
            ctk.CTkLabel(self.quiz_frame, text=session.error_message, text_color=WRONG).pack(pady=5)
        self._topic_list(self.quiz_frame, self.start_quiz).pack(fill="both", expand=True, padx=120)

    def start_quiz(self, topic: Topic):
        engine, session = self.app.quiz_engine, self.app.quiz_session
        request_id = engine.select_topic(session, topic)
        self.render_quiz()
        self._run_in_thread(lambda: self.app.fetcher.fetch_quiz_questions(topic.title),
                            lambda res: self._quiz_loaded(request_id, res))

    def _quiz_loaded(self, request_id: int, questions):
        if isinstance(questions, Exception):
            questions = []
        accepted = self.app.quiz_engine.finish_loading(self.app.quiz_session, request_id, questions)
        stale = not accepted and self.app.quiz_session.request_id != request_id
        if not stale and self.app.active_tab == AppTab.QUIZ:
            self.render_quiz()

    def _quiz_loading(self):
        topic = self.app.quiz_session.selected_topic
        ctk.CTkLabel(self.quiz_frame, text=f"Gerando questões sobre {topic.title if topic else ''}...",
                     font=("Helvetica", 16), text_color=MEDICAL).pack(pady=(200, 10))
        bar = ctk.CTkProgressBar(self.quiz_frame, width=300, mode="indeterminate", progress_color=MEDICAL)
        bar.pack()
        bar.start()

    def _quiz_active(self):
        engine, session = self.app.quiz_engine, self.app.quiz_session
        q = session.current_question
        total = len(session.questions)

        ctk.CTkLabel(self.quiz_frame,
                     text=f"{session.selected_topic.title} · Questão {session.current_index + 1}/{total}"
                          f" · Pontuação: {session.score}",
                     font=("Helvetica", 14, "bold"), text_color="#475569").pack(anchor="w", pady=(0, 10))

        card = ctk.CTkFrame(self.quiz_frame, fg_color="white", corner_radius=12)
        card.pack(fill="both", expand=True)
        ctk.CTkLabel(card, text=q.question, font=("Helvetica", 17), wraplength=800, justify="left",
                     text_color="#0f172a").pack(anchor="w", padx=20, pady=20)

        colors = {"correct": CORRECT, "wrong": WRONG, "neutral": NEUTRAL}
        for i, opt in enumerate(q.options):
            state = engine.option_state(session, i)
            wrap = "\n".join(textwrap.wrap(opt, width=90))
            ctk.CTkButton(card, text=f"{'ABCD'[i]}) {wrap}", anchor="w", height=54,
                          fg_color=colors[state], text_color="white" if state != "neutral" else "#0f172a",
                          hover_color="#cbd5e1" if not session.revealed else colors[state],
                          command=lambda x=i: self.answer_quiz(x)).pack(fill="x", padx=20, pady=4)

        if session.revealed:
            box = ctk.CTkFrame(card, fg_color="#f0f9ff", corner_radius=10)
            box.pack(fill="x", padx=20, pady=15)
            ctk.CTkLabel(box, text=f"📖 Explicação: {q.explanation}", wraplength=780, justify="left",
                         text_color="#075985").pack(anchor="w", padx=15, pady=12)
            label = "VER RESULTADO ➤" if session.is_last_question else "PRÓXIMA QUESTÃO ➤"
            ctk.CTkButton(card, text=label, height=46, fg_color=MEDICAL, hover_color=MEDICAL_DARK,
                          command=self.advance_quiz).pack(fill="x", padx=20, pady=(0, 20))

    def answer_quiz(self, option_index: int):
        if self.app.quiz_engine.answer(self.app.quiz_session, option_index):
            self.render_quiz()

    def advance_quiz(self):
        self.app.quiz_engine.advance(self.app.quiz_session)
        self.render_quiz()

    def _quiz_result(self):
        engine, session = self.app.quiz_engine, self.app.quiz_session
        result = engine.result(session)
        ctk.CTkLabel(self.quiz_frame, text="🏆 Resultado", font=("Helvetica", 24, "bold"),
                     text_color="#0f172a").pack(pady=(120, 10))
        ctk.CTkLabel(self.quiz_frame, text=f"{result.score}/{result.total}", font=("Helvetica", 52, "bold"),
                     text_color=CORRECT if result.passed else WRONG).pack()
        ctk.CTkLabel(self.quiz_frame, text=engine.result_message(session), font=("Helvetica", 15),
                     text_color="#475569").pack(pady=10)
        ctk.CTkButton(self.quiz_frame, text="↻ Novo Quiz", height=46, width=240, fg_color=MEDICAL,
                      command=self.reset_quiz).pack(pady=20)

    def reset_quiz(self):
        self.app.quiz_engine.reset(self.app.quiz_session)
        self.render_quiz()

    # =========================================================
    # MICROSCÓPIO
    # =========================================================
    def build_microscope(self):
        self.content.grid_columnconfigure((0, 1), weight=1)
        self.content.grid_rowconfigure(0, weight=1)

        left = ctk.CTkFrame(self.content, fg_color="white", corner_radius=12)
        left.grid(row=0, column=0, sticky="nsew", padx=(0, 10))
        ctk.CTkLabel(left, text="Microscópio Virtual", font=("Helvetica", 20, "bold"),
                     text_color="#0f172a").pack(anchor="w", padx=20, pady=(20, 0))
        ctk.CTkLabel(left, text="IA treinada para patologia e histologia",
                     text_color="#64748b").pack(anchor="w", padx=20)

        self.micro_preview = ctk.CTkLabel(left, text="Nenhuma lâmina carregada", height=380, fg_color=SLATE,
                                          corner_radius=10, cursor="hand2")
        self.micro_preview.pack(fill="both", expand=True, padx=20, pady=15)
        self.micro_preview.bind("<Button-1>", lambda e: self._open_micro_viewer())

        buttons = ctk.CTkFrame(left, fg_color="transparent")
        buttons.pack(fill="x", padx=20, pady=(0, 20))
        ctk.CTkButton(buttons, text="⬆ Enviar imagem", fg_color="#334155",
                      command=self.upload_micro_image).pack(side="left", expand=True, fill="x", padx=(0, 5))
        self.btn_analyze = ctk.CTkButton(buttons, text="🔍 Analisar lâmina", fg_color=MEDICAL,
                                         command=self.analyze_micro_image)
        self.btn_analyze.pack(side="left", expand=True, fill="x", padx=5)
        ctk.CTkButton(buttons, text="✕", width=44, fg_color="#94a3b8",
                      command=self.reset_microscope).pack(side="left", padx=(5, 0))

        right = ctk.CTkFrame(self.content, fg_color="white", corner_radius=12)
        right.grid(row=0, column=1, sticky="nsew", padx=(10, 0))
        self.micro_status = ctk.CTkLabel(right, text="", text_color=MEDICAL)
        self.micro_status.pack(anchor="w", padx=20, pady=(20, 0))
        self.micro_result = ctk.CTkTextbox(right, font=("Helvetica", 15), wrap="word", fg_color="white")
        self.micro_result.pack(fill="both", expand=True, padx=20, pady=(5, 20))
        self._render_micro()

    def upload_micro_image(self):
        path = filedialog.askopenfilename(filetypes=IMAGE_FILETYPES)
        if not path:
            return
        try:
            validate_upload(path, mimetypes.guess_type(path)[0])
            data = Path(path).read_bytes()
        except ValidationError as e:
            messagebox.showwarning("Microscópio", str(e))
            return
        except OSError as e:
            logger.error("[GUI] Falha ao ler %s: %s", path, e)
            messagebox.showerror("Microscópio", messages.IMAGE_PROCESSING_FAILED)
            return

        # um novo envio substitui o interesse no anterior
        self._micro_request += 1
        token = self._micro_request
        self.micro_analysis = None
        self.micro_status.configure(text="Processando imagem...")
        self._run_in_thread(lambda: normalize_image(data), lambda res: self._micro_loaded(token, res))

    def _micro_loaded(self, token: int, result):
        if token != self._micro_request:
            return
        on_screen = self.micro_preview.winfo_exists()
        if isinstance(result, Exception):
            if on_screen:
                self.micro_status.configure(text="")
            messagebox.showerror("Microscópio", messages.IMAGE_PROCESSING_FAILED)
            return
        self.micro_image_url = result
        if on_screen:
            self._render_micro()

    def analyze_micro_image(self):
        if not self.micro_image_url:
            return
        self._micro_request += 1
        token = self._micro_request
        url = self.micro_image_url
        self.btn_analyze.configure(state="disabled", text="Analisando...")
        self.micro_status.configure(text="Analisando lâmina...")
        self._run_in_thread(lambda: self.app.fetcher.analyze_image(url), lambda res: self._micro_done(token, res))

    def _micro_done(self, token: int, analysis):
        if token != self._micro_request:
            return
        failed = analysis is None or isinstance(analysis, Exception)
        self.micro_analysis = None if failed else analysis
        if not self.micro_result.winfo_exists():
            return
        self.btn_analyze.configure(state="normal", text="🔍 Analisar lâmina")
        self._render_micro()
        if failed:
            self.micro_status.configure(text=messages.MICROSCOPE_FAILED, text_color=WRONG)

    def reset_microscope(self):
        self._micro_request += 1
        self.micro_image_url = None
        self.micro_analysis = None
        self._render_micro()

    def _render_micro(self):
        self.micro_status.configure(text="", text_color=MEDICAL)
        if self.micro_image_url:
            img = image_from_data_url(self.micro_image_url)
            size = fit_size(img.width, img.height, 520, 380)
            ctk_img = ctk.CTkImage(light_image=img, dark_image=img, size=size)
            self.micro_preview.configure(image=ctk_img, text="")
            self.micro_preview.image = ctk_img
        else:
            self.micro_preview.configure(image=None, text="Nenhuma lâmina carregada")
            self.micro_preview.image = None
        self.btn_analyze.configure(state="normal" if self.micro_image_url else "disabled")

        a = self.micro_analysis
        if a is None:
            self._set_text(self.micro_result, "Envie uma lâmina e clique em \"Analisar\".")
            return
        features = "\n".join(f"  • {f}" for f in a.features)
        self._set_text(
            self.micro_result,
            f"🧫 Tecido identificado\n{a.tissue_type}\n\n"
            f"🩺 Diagnóstico\n{a.diagnosis}\n\n"
            f"🔎 Estruturas visíveis\n{features}\n\n"
            f"📝 Descrição\n{a.description}",
        )

    def _open_micro_viewer(self):
        if self.micro_image_url:
            ImagePopup(image_from_data_url(self.micro_image_url), "Lâmina", self)

    # =========================================================
    # MAPAS MENTAIS
    # =========================================================
    def build_mindmaps(self):
        gallery = self.app.gallery
        gallery.on_change = self._on_gallery_change

        header = ctk.CTkFrame(self.content, fg_color="white", corner_radius=12)
        header.pack(fill="x", pady=(0, 15))
        ctk.CTkLabel(header, text="Mapas Mentais", font=("Helvetica", 20, "bold"),
                     text_color="#0f172a").pack(anchor="w", padx=20, pady=(15, 0))
        status = "🔓 Modo edição (Admin)" if gallery.can_edit else "🔒 Somente leitura"
        ctk.CTkLabel(header, text=status, text_color="#64748b").pack(anchor="w", padx=20, pady=(0, 10))

        if gallery.can_edit:
            row = ctk.CTkFrame(header, fg_color="transparent")
            row.pack(fill="x", padx=20, pady=(0, 15))
            self.entry_map_title = ctk.CTkEntry(row, placeholder_text="Título do mapa (opcional)", height=38)
            self.entry_map_title.pack(side="left", fill="x", expand=True, padx=(0, 10))
            self.btn_upload_map = ctk.CTkButton(row, text="⬆ Enviar mapa", height=38, fg_color=MEDICAL,
                                                command=self.upload_mindmap)
            self.btn_upload_map.pack(side="left")

        self.gallery_alert = ctk.CTkLabel(self.content, text="", wraplength=900, justify="left")
        self.gallery_alert.pack(fill="x")
        self.gallery_grid = ctk.CTkScrollableFrame(self.content, fg_color="transparent")
        self.gallery_grid.pack(fill="both", expand=True)
        self.render_gallery()

    def _on_gallery_change(self):
        if self.app.active_tab == AppTab.MINDMAP and self.gallery_grid.winfo_exists():
            self.render_gallery()

    def _gallery_message(self, text: str, error: bool):
        self.gallery_alert.configure(text=text, text_color=WRONG if error else CORRECT)

    def render_gallery(self):
        gallery = self.app.gallery
        for w in self.gallery_grid.winfo_children():
            w.destroy()
        if gallery.warning:
            self._gallery_message(gallery.warning, error=True)

        items = gallery.items
        if not items:
            ctk.CTkLabel(self.gallery_grid, text="Nenhum mapa mental disponível ainda.",
                         text_color="#94a3b8").pack(pady=60)
            return

        cols = 3
        for c in range(cols):
            self.gallery_grid.grid_columnconfigure(c, weight=1)
        for idx, item in enumerate(items):
            self._gallery_card(item).grid(row=idx // cols, column=idx % cols, padx=8, pady=8, sticky="nsew")

    def _gallery_card(self, item: MindMapItem) -> ctk.CTkFrame:
        card = ctk.CTkFrame(self.gallery_grid, fg_color="white", corner_radius=12)
        try:
            img = image_from_data_url(item.url)
            thumb = ctk.CTkImage(light_image=img, dark_image=img, size=fit_size(img.width, img.height, 300, 200))
            lbl = ctk.CTkLabel(card, image=thumb, text="", cursor="hand2")
            lbl.image = thumb
            lbl.bind("<Button-1>", lambda e, x=item: self.view_mindmap(x))
            lbl.pack(padx=10, pady=(10, 5))
        except (ValueError, OSError) as e:
            logger.error("[GUI] Miniatura inválida para %s: %s", item.id, e)
            ctk.CTkLabel(card, text="(imagem indisponível)", text_color="#94a3b8").pack(pady=40)

        ctk.CTkLabel(card, text=item.title, font=("Helvetica", 14, "bold"), text_color="#0f172a",
                     wraplength=280).pack(anchor="w", padx=12)
        ctk.CTkLabel(card, text=item.date_added.strftime("%d/%m/%Y %H:%M"),
                     text_color="#94a3b8").pack(anchor="w", padx=12)

        row = ctk.CTkFrame(card, fg_color="transparent")
        row.pack(fill="x", padx=12, pady=(5, 12))
        ctk.CTkButton(row, text="👁 Ver", width=70, fg_color="#334155",
                      command=lambda x=item: self.view_mindmap(x)).pack(side="left")
        if self.app.gallery.can_edit:
            ctk.CTkButton(row, text="🗑 Excluir", width=90, fg_color=WRONG,
                          command=lambda x=item: self.delete_mindmap(x)).pack(side="right")
        return card

    def view_mindmap(self, item: MindMapItem):
        try:
            ImagePopup(image_from_data_url(item.url), item.title, self)
        except (ValueError, OSError) as e:
            logger.error("[GUI] Não foi possível abrir %s: %s", item.id, e)
            self._gallery_message(messages.IMAGE_PROCESSING_FAILED, error=True)

    def upload_mindmap(self):
        path = filedialog.askopenfilename(filetypes=IMAGE_FILETYPES)
        if not path:
            return
        mime = mimetypes.guess_type(path)[0]
        try:
            validate_upload(path, mime)
            data = Path(path).read_bytes()
        except ValidationError as e:
            messagebox.showwarning("Mapas Mentais", str(e))
            return
        except OSError as e:
            logger.error("[GUI] Falha ao ler %s: %s", path, e)
            self._gallery_message(messages.IMAGE_PROCESSING_FAILED, error=True)
            return

        title = self.entry_map_title.get()
        self._gallery_message("", error=False)
        self.btn_upload_map.configure(state="disabled", text="Processando...")
        self._gallery_request += 1
        token = self._gallery_request
        # só a normalização vai para a thread; a coleção muda na thread da interface
        self._run_in_thread(lambda: normalize_image(data),
                            lambda res: self._mindmap_ready(token, title, Path(path).name, res))

    def _mindmap_ready(self, token, title, filename, result):
        if token != self._gallery_request or not self.btn_upload_map.winfo_exists():
            return
        self.btn_upload_map.configure(state="normal", text="⬆ Enviar mapa")
        if isinstance(result, ProcessingError):
            self._gallery_message(str(result), error=True)
            return
        if isinstance(result, Exception):
            self._gallery_message(messages.IMAGE_PROCESSING_FAILED, error=True)
            return
        try:
            self.app.gallery.add_normalized(title, result, filename)
        except PermissionDeniedError as e:
            self._gallery_message(str(e), error=True)
            return

        self.entry_map_title.delete(0, "end")
        self.render_gallery()
        if not self.app.gallery.warning:
            self._gallery_message(messages.MINDMAP_ADDED, error=False)

    def delete_mindmap(self, item: MindMapItem):
        confirmed = messagebox.askyesno("Excluir", messages.CONFIRM_DELETE_MINDMAP)
        try:
            if self.app.gallery.delete(item.id, confirmed):
                self._gallery_message("", error=False)
                self.render_gallery()
        except HistoMedError as e:
            self._gallery_message(str(e), error=True)

    # =========================================================
    # REGISTRO DE ALUNOS
    # =========================================================
    def build_student_logs(self):
        header = ctk.CTkFrame(self.content, fg_color="white", corner_radius=12)
        header.pack(fill="x", pady=(0, 15))
        ctk.CTkLabel(header, text="Registro de Alunos", font=("Helvetica", 20, "bold"),
                     text_color="#0f172a").pack(side="left", padx=20, pady=15)
        self.btn_clear_logs = ctk.CTkButton(header, text="🗑 Limpar", width=100, fg_color=WRONG,
                                            command=self.clear_logs)
        self.btn_clear_logs.pack(side="right", padx=(5, 20))
        self.btn_export_logs = ctk.CTkButton(header, text="⬇ Exportar CSV", width=130, fg_color=CORRECT,
                                             command=self.export_logs)
        self.btn_export_logs.pack(side="right", padx=5)

        self.entry_log_search = ctk.CTkEntry(self.content, placeholder_text="Buscar aluno por nome ou e-mail...",
                                             height=40)
        self.entry_log_search.pack(fill="x", pady=(0, 10))
        self.entry_log_search.bind("<KeyRelease>", lambda e: self.render_logs())

        self.logs_box = ctk.CTkTextbox(self.content, font=("Courier", 14), fg_color="white")
        self.logs_box.pack(fill="both", expand=True)
        self.render_logs()

    def render_logs(self):
        book = self.app.log_book
        all_logs = book.entries()
        state = "normal" if all_logs else "disabled"
        self.btn_clear_logs.configure(state=state)
        self.btn_export_logs.configure(state=state)

        if not all_logs:
            self._set_text(self.logs_box, "Nenhum acesso registrado ainda.")
            return
        logs = book.search(self.entry_log_search.get())
        lines = [f"{'Data':<22}{'Nome':<30}Email", "-" * 90]
        lines += [f"{x.date.strftime('%d/%m/%Y %H:%M:%S'):<22}{x.name:<30}{x.email}" for x in logs]
        self._set_text(self.logs_box, "\n".join(lines))

    def export_logs(self):
        from histomed.engine.student_logs import EXPORT_FILENAME

        path = filedialog.asksaveasfilename(defaultextension=".csv", initialfile=EXPORT_FILENAME,
                                            filetypes=[("CSV", "*.csv")])
        if not path:
            return
        try:
            saved = self.app.log_book.export_csv(path)
        except OSError as e:
            messagebox.showerror("Exportar", str(e))
            return
        messagebox.showinfo("Exportar", messages.LOGS_EXPORTED.format(path=saved))

    def clear_logs(self):
        if messagebox.askyesno("Limpar histórico", messages.CONFIRM_CLEAR_LOGS):
            self.app.log_book.clear()
            self.render_logs()

    def on_close(self):
        self.app.shutdown()
        self.destroy()


def run_gui(app: Optional[AppState] = None) -> None:
    if app is None:
        settings = Settings.from_env()
        configure_logging(settings.log_level)
        app = AppState.from_settings(settings)
    HistoMedApp(app).mainloop()


if __name__ == "__main__":
    run_gui()
