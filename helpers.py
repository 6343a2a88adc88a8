# helpers.py
import unicodedata
from urllib.parse import urlparse, parse_qs


def normalizar_nombre(valor):
    """
    Quita acentos, pasa a mayúsculas y colapsa espacios.
    'Diseño y Desarrollo ' -> 'DISENO Y DESARROLLO'
    """
    texto = unicodedata.normalize('NFD', str(valor or ''))
    texto = ''.join(c for c in texto if not unicodedata.combining(c))
    return ' '.join(texto.upper().split())


def aplicar_alias(valor, alias):
    """Normaliza y reemplaza, palabra por palabra, las variantes ortográficas conocidas."""
    palabras = normalizar_nombre(valor).split(' ')
    return ' '.join(alias.get(p, p) for p in palabras)


def es_url_archivo_onedrive(url):
    """
    Acepta sólo enlaces a un ARCHIVO de OneDrive/SharePoint, nunca a una carpeta.
    - 1drv.ms:         /f/... es carpeta
    - *.sharepoint.com: /:w:/, /:b:/, ... son archivos; /:f:/ es carpeta
    - onedrive.live.com: requiere resid o id en la query
    """
    try:
        partes = urlparse(str(url or '').strip())
    except ValueError:
        return False

    if partes.scheme not in ('http', 'https'):
        return False

    host = (partes.hostname or '').lower()
    path = partes.path or ''

    if host == '1drv.ms':
        return len(path) > 1 and not path.startswith('/f/')
    if host.endswith('sharepoint.com'):
        return path.startswith('/:') and not path.startswith('/:f:')
    if host == 'onedrive.live.com':
        query = parse_qs(partes.query)
        return 'resid' in query or 'id' in query
    return False


def parse_bool(valor):
    return str(valor or '').strip().lower() in ('1', 'true', 'yes', 'si', 'sí', 'all', 'on')
