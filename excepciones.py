# excepciones.py
"""
Errores del flujo de correspondencia.

Cada excepción lleva el código HTTP con el que se responde; el manejador
registrado en routes/handle_errors.py arma el JSON {success: false, message}.

    CorrespondenciaError (500)
    +-- ErrorValidacion (400)   datos faltantes o inválidos
    +-- NoEncontrado (404)      expediente o usuario inexistente
    +-- EstadoInvalido (400)    transición no permitida desde el estado actual
    |   +-- ModificacionConcurrente (409)
    +-- Prohibido (403)         no es propietario ni super-rol
    +-- NoAutenticado (401)
"""


class CorrespondenciaError(Exception):
    status_code = 500
    default_message = 'Error interno'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self):
        payload = {'success': False, 'message': self.message}
        payload.update(self.extra)
        return payload


class ErrorValidacion(CorrespondenciaError):
    status_code = 400
    default_message = 'Datos inválidos'


class NoEncontrado(CorrespondenciaError):
    status_code = 404
    default_message = 'No encontrado'


class EstadoInvalido(CorrespondenciaError):
    status_code = 400
    default_message = 'Transición no permitida en el estado actual'


class ModificacionConcurrente(EstadoInvalido):
    status_code = 409
    default_message = 'El expediente fue modificado por otro usuario; recargue e intente de nuevo'


class Prohibido(CorrespondenciaError):
    status_code = 403
    default_message = 'No autorizado para esta acción'


class NoAutenticado(CorrespondenciaError):
    status_code = 401
    default_message = 'No autenticado (sesión faltante o inválida)'
