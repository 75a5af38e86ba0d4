# histomed/messages.py
# Mensagens exibidas ao usuário (pt-BR).

LIBRARY_UNAVAILABLE = "Não foi possível carregar o conteúdo da biblioteca. Verifique sua chave de API."

QUIZ_LOAD_FAILED = "Erro ao gerar questões. Tente novamente."
QUIZ_PASSED = "Excelente! Você domina este assunto."
QUIZ_REVIEW = "Recomendamos revisar a matéria na Biblioteca."

MICROSCOPE_FAILED = "Não foi possível analisar a imagem. Tente novamente."

STORAGE_FULL = (
    "Espaço insuficiente no armazenamento! A imagem é muito grande ou há muitos mapas salvos. "
    "Tente excluir itens antigos."
)
IMAGE_PROCESSING_FAILED = "Erro ao processar a imagem. Tente um arquivo menor ou outro formato."
INVALID_IMAGE_FILE = "Por favor, selecione um arquivo de imagem válido (PNG, JPG)."
MINDMAP_ADDED = "Mapa mental adicionado com sucesso!"
CONFIRM_DELETE_MINDMAP = "Tem certeza que deseja excluir este mapa mental? O item será removido para todos os alunos."
ADMIN_ONLY = "Apenas o administrador pode alterar a galeria."

CONFIRM_CLEAR_LOGS = "Tem certeza que deseja limpar todo o histórico de acesso?"
LOGS_EXPORTED = "Histórico exportado para: {path}"

MISSING_SIGNUP_FIELDS = "Por favor, preencha nome, e-mail e senha."
MISSING_LOGIN_FIELDS = "Por favor, preencha e-mail e senha."
INVALID_EMAIL = "Por favor, insira um e-mail válido."
SHORT_PASSWORD = "A senha deve ter pelo menos 6 caracteres."
SIGNUP_CONFIRM_EMAIL = (
    "Cadastro criado! Agora confirme o e-mail (veja a caixa de entrada/Spam) para poder entrar."
)
SIGNUP_LOGIN_NEEDED = "Cadastro criado. Faça login para entrar."
SIGNUP_FAILED = "Erro ao criar conta."
LOGIN_FAILED = "Erro ao entrar."
LOGIN_NO_USER = "Não foi possível obter o usuário. Tente novamente."
EMAIL_NOT_CONFIRMED = "Você precisa confirmar seu e-mail antes de entrar. Verifique a caixa de entrada/Spam."
MISSING_ADMIN_PASSWORD = "Digite a senha do administrador."
WRONG_ADMIN_PASSWORD = "Senha de administrador incorreta."
AUTH_UNAVAILABLE = "Login de alunos indisponível: configure SUPABASE_URL e SUPABASE_ANON_KEY."
