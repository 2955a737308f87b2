from .jades import sign
from .jws import JWS, check_key_type, load_private_key
from .token import Token
from .headers import (ProtectedHeader, UnprotectedHeader, build_protected_header,
                      build_unprotected_header, generate_commitments, signing_time)
from .certs import (parse_certs, generate_kid, generate_x5c, generate_x5t_s256, generate_x5o,
                    generate_x5ts)
from .exceptions import (JAdESException, ValidationError, KeyTypeError, UnsupportedAlgorithm,
                         ArgumentError)
