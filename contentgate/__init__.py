"""contentgate: article access control and e-mail code sign-in."""
