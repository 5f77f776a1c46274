
"""
Configurações do projeto Django plataforma_eventos.

Inclui carregamento de variáveis de ambiente, configuração de apps, middlewares, banco de dados,
caches (inclusive o armazenamento por navegador usado na sincronização entre abas),
arquivos estáticos, internacionalização, email, logging e parâmetros da plataforma.
"""

import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# -------------------------------------------------------------------
# Simple .env loader (key=value per line) for local dev convenience
# Looks for .env in project folder and repository root (next to README.md)
# -------------------------------------------------------------------

# -------------------------------------------------------------------
# Função utilitária para carregar variáveis de ambiente de um arquivo .env
# -------------------------------------------------------------------
def _load_env_file(path):
    """
    Carrega variáveis de ambiente de um arquivo .env (key=value por linha).
    Ignora linhas comentadas ou inválidas.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' in line:
                    k, v = line.split('=', 1)
                    os.environ.setdefault(k.strip(), v.strip())
    except OSError:
        # arquivo ilegível: segue só com o ambiente do processo
        pass

env_candidates = [
    os.path.join(BASE_DIR, '.env'),            # project folder
    os.path.join(BASE_DIR.parent, '.env'),     # repo root (next to README.md)
]
for env_path in env_candidates:
    if os.path.exists(env_path):
        _load_env_file(env_path)
        break


def _env_bool(name, default):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


# -------------------------------------------------------------------
# Configuração de arquivos de mídia (uploads de usuários)
# -------------------------------------------------------------------
MEDIA_URL = '/media/'
MEDIA_ROOT = os.environ.get('MEDIA_ROOT', os.path.join(BASE_DIR, 'media'))



# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get(
    'SECRET_KEY',
    "django-insecure-t8m#r2q!plataforma-eventos-dev-only-w5x^k0v9z&3c",
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = _env_bool('DEBUG', 'true')

ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', '*').split(',')



# -------------------------------------------------------------------
# Definição das aplicações instaladas
# -------------------------------------------------------------------

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    'usuarios',
    'eventos',
    'rest_framework',
    'rest_framework.authtoken',
    'plataforma_eventos',
    'notifications',
]


# -------------------------------------------------------------------
# Configuração do Django REST Framework (API authentication + throttling)
# -------------------------------------------------------------------
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': int(os.environ.get('FEED_PAGE_SIZE', '12')),
    # Throttle rates are referenced by scope names in custom throttles
    'DEFAULT_THROTTLE_RATES': {
        'feed': '600/hour',
        'inscricao': '120/hour',
    }
}


# -------------------------------------------------------------------
# Middlewares do projeto
# -------------------------------------------------------------------
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "plataforma_eventos.middleware.PerfilNavegadorMiddleware",
    "plataforma_eventos.middleware.AuditMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


# -------------------------------------------------------------------
# Configuração de URLs, templates e WSGI
# -------------------------------------------------------------------
ROOT_URLCONF = "plataforma_eventos.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [os.path.join(BASE_DIR, 'plataforma_eventos', 'templates'),],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
                "plataforma_eventos.context_processors.global_nav",
            ],
        },
    },
]

WSGI_APPLICATION = "plataforma_eventos.wsgi.application"



# -------------------------------------------------------------------
# Configuração do banco de dados
# -------------------------------------------------------------------

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get('DATABASE_PATH', BASE_DIR / "db.sqlite3"),
    }
}



# -------------------------------------------------------------------
# Caches
# -------------------------------------------------------------------
# 'navegador' guarda o estado de cada navegador (cadastro pendente, timestamp
# de execução, tokens) e as mensagens do canal entre abas. Precisa sobreviver
# a recarregamentos e reinícios, por isso é baseado em arquivo por padrão.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "plataforma-default",
    },
    "navegador": {
        "BACKEND": os.environ.get(
            'NAVEGADOR_CACHE_BACKEND',
            "django.core.cache.backends.filebased.FileBasedCache",
        ),
        "LOCATION": os.environ.get('NAVEGADOR_CACHE_DIR', os.path.join(BASE_DIR, '.navegador_cache')),
        "TIMEOUT": None,
    },
}



# -------------------------------------------------------------------
# Validação de senha
# -------------------------------------------------------------------

AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
        "OPTIONS": {"min_length": 6},
    },
]

LOGIN_URL = 'login'



# -------------------------------------------------------------------
# Internacionalização e fuso horário
# -------------------------------------------------------------------

LANGUAGE_CODE = "pt-br"

TIME_ZONE = "UTC"

USE_I18N = True

USE_TZ = True



# -------------------------------------------------------------------
# Arquivos estáticos (CSS, JS, imagens)
# -------------------------------------------------------------------

STATIC_URL = "/static/"
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedStaticFilesStorage",
    },
}


# -------------------------------------------------------------------
# Tipo de campo primário padrão para modelos
# -------------------------------------------------------------------

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -------------------------------------------------------------------

# -------------------------------------------------------------------
# Configuração de email
# -------------------------------------------------------------------
EMAIL_BACKEND = os.environ.get('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = os.environ.get('EMAIL_HOST', '')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', '587'))
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = _env_bool('EMAIL_USE_TLS', 'true')
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'Plataforma de Eventos <no-reply@eventos.local>')

# URL pública do site usada em emails de confirmação (definida no .env para produção)
SITE_URL = os.environ.get('SITE_URL', '')


# -------------------------------------------------------------------
# Parâmetros da plataforma
# -------------------------------------------------------------------
PLATAFORMA = {
    # janela em que uma segunda execução da materialização do perfil é
    # considerada disparo duplicado do mesmo evento de confirmação
    'JANELA_DEBOUNCE_SEGUNDOS': int(os.environ.get('JANELA_DEBOUNCE_SEGUNDOS', '5')),
    # mensagens do canal entre abas são efêmeras
    'TTL_MENSAGEM_CANAL_SEGUNDOS': int(os.environ.get('TTL_MENSAGEM_CANAL_SEGUNDOS', '60')),
    'VALIDADE_TOKEN_SEGUNDOS': int(os.environ.get('VALIDADE_TOKEN_SEGUNDOS', '3600')),
    'COOKIE_PERFIL_NAVEGADOR': 'perfil_navegador',
    'MAX_BYTES_IMAGEM': int(os.environ.get('MAX_BYTES_IMAGEM', str(5 * 1024 * 1024))),
    'START_EMAIL_WORKER': _env_bool('START_EMAIL_WORKER', 'true'),
}


# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'padrao': {
            'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'padrao',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
    },
}
